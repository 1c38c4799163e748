# tests/v1/test_orders.py

import pytest
from datetime import datetime
from decimal import Decimal
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from app.crud import loyalty as crud_loyalty
from app.crud import notification as crud_notification
from app.models.order import Order, Store
from app.models.user import User
from app.services import loyalty as loyalty_service

pytestmark = pytest.mark.asyncio

ORDER_PAYLOAD = {
    "store": "thailand",
    "items": [
        {"product_id": "balm-1", "name": "Бальзам Звездочка", "price": 1500, "quantity": 2},
        {"product_id": "sample-7", "name": "Пробник чая", "price": 200, "quantity": 1, "is_sample": True},
    ],
    "shipping_cost": 500,
}


async def test_create_order(client: AsyncClient, auth_headers: dict, test_user: User):
    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == test_user.id
    assert data["status"] == "pending"
    assert data["store"] == "thailand"
    # Суммы считаются на сервере
    assert data["subtotal"] == 3200
    assert data["subtotal_without_samples"] == 3000
    assert data["total_price"] == 3700
    assert data["loyalty_points_earned"] is False
    assert data["email"] == test_user.email
    assert len(data["order_number"]) == 6 and data["order_number"].isdigit()
    assert len(data["items"]) == 2


async def test_create_order_sends_in_app_confirmation(client: AsyncClient, auth_headers: dict, test_user: User, db_session):
    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)
    assert response.status_code == 201

    notifications = crud_notification.get_notifications(db_session, test_user.id)
    assert len(notifications) == 1
    assert notifications[0].type == "order_new"
    assert notifications[0].related_entity_id == response.json()["order_number"]


async def test_order_numbers_are_sequential(client: AsyncClient, auth_headers: dict):
    first = (await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)).json()
    second = (await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)).json()

    assert first["order_number"][:4] == second["order_number"][:4]
    assert int(second["order_number"]) == int(first["order_number"]) + 1


async def test_create_order_with_points(client: AsyncClient, auth_headers: dict, test_user: User, db_session):
    loyalty_service.update_user_loyalty(db_session, test_user.id, 500, loyalty_service.EARNED, "Начислено")

    payload = {**ORDER_PAYLOAD, "loyalty_points_used": 300}
    response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["loyalty_points_used"] == 300
    assert data["total_price"] == 3400

    account = crud_loyalty.get_account(db_session, test_user.id)
    db_session.refresh(account)
    assert account.points_balance == 200
    assert account.total_spent == 300
    spent = crud_loyalty.get_user_history(db_session, test_user.id)[0]
    assert spent.type == "spent"
    assert spent.order_id == data["id"]


async def test_create_order_with_insufficient_points(client: AsyncClient, auth_headers: dict, test_user: User, db_session):
    loyalty_service.update_user_loyalty(db_session, test_user.id, 100, loyalty_service.EARNED, "Начислено")

    payload = {**ORDER_PAYLOAD, "loyalty_points_used": 300}
    response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

    assert response.status_code == 409
    # Заказ не создан, баланс не тронут
    assert db_session.query(Order).count() == 0
    assert crud_loyalty.get_account(db_session, test_user.id).points_balance == 100


async def test_points_cannot_exceed_products_subtotal(client: AsyncClient, auth_headers: dict, test_user: User, db_session):
    loyalty_service.update_user_loyalty(db_session, test_user.id, 5000, loyalty_service.EARNED, "Начислено")

    payload = {**ORDER_PAYLOAD, "loyalty_points_used": 3100}
    response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert db_session.query(Order).count() == 0


async def test_create_order_validation(client: AsyncClient, auth_headers: dict):
    response = await client.post("/api/v1/orders", json={**ORDER_PAYLOAD, "items": []}, headers=auth_headers)
    assert response.status_code == 422

    response = await client.post("/api/v1/orders", json={**ORDER_PAYLOAD, "store": "japan"}, headers=auth_headers)
    assert response.status_code == 422


async def test_create_order_requires_auth(client: AsyncClient):
    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD)
    assert response.status_code in (401, 403)

    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers={"Authorization": "Bearer broken"})
    assert response.status_code == 401


async def test_get_own_orders(client: AsyncClient, auth_headers: dict, test_user: User, admin_user: User, make_order):
    make_order(test_user, 1000)
    make_order(test_user, 2000)
    make_order(admin_user, 3000)

    response = await client.get("/api/v1/orders", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 2
    assert all(order["user_id"] == test_user.id for order in data)


async def test_order_number_collision_retries_next_number(
    client: AsyncClient, auth_headers: dict, test_user: User, db_session
):
    # 1. Параллельный заказ уже занял номер, который выдаст счетчик (ДДММ02)
    prefix = datetime.now().strftime("%d%m")
    db_session.add(Order(
        order_number=f"{prefix}02", user_id=test_user.id, store=Store.china,
        subtotal=Decimal("100"), subtotal_without_samples=Decimal("100"), total_price=Decimal("100"),
    ))
    db_session.commit()

    # 2. Оформляем заказ
    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)

    # 3. Заказ получил следующий свободный номер
    assert response.status_code == 201
    assert response.json()["order_number"] == f"{prefix}03"
    assert db_session.query(Order).count() == 2


async def test_order_number_exhausted_returns_conflict(
    client: AsyncClient, auth_headers: dict, test_user: User, db_session, mocker
):
    db_session.add(Order(
        order_number="010101", user_id=test_user.id, store=Store.china,
        subtotal=Decimal("100"), subtotal_without_samples=Decimal("100"), total_price=Decimal("100"),
    ))
    db_session.commit()
    mocker.patch("app.services.order.generate_order_number", return_value="010101")

    response = await client.post("/api/v1/orders", json=ORDER_PAYLOAD, headers=auth_headers)

    assert response.status_code == 409
    assert db_session.query(Order).count() == 1


async def test_points_spend_on_concurrently_created_account_returns_conflict(
    client: AsyncClient, auth_headers: dict, db_session, mocker
):
    mocker.patch(
        "app.crud.loyalty.get_or_create_account",
        side_effect=IntegrityError("INSERT INTO loyalty_accounts", {}, Exception("duplicate key")),
    )

    payload = {**ORDER_PAYLOAD, "loyalty_points_used": 300}
    response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

    assert response.status_code == 409
    assert db_session.query(Order).count() == 0
