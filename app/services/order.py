# app/services/order.py

import logging
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud import order as crud_order
from app.models.order import Order, OrderItem, OrderStatus
from app.models.user import User
from app.schemas.order import OrderCreate
from app.services import loyalty as loyalty_service
from app.services import notification as notification_service
from app.services.cashback import eligible_subtotal
from app.services.exceptions import OrderConflictError, OrderNotFoundError, OrderValidationError
from app.services.loyalty_tiers import to_decimal

logger = logging.getLogger(__name__)

# Сколько раз пробуем следующий номер при столкновении
ORDER_NUMBER_ATTEMPTS = 3


def generate_order_number(db: Session, now: datetime | None = None, offset: int = 0) -> str:
    """
    Номер заказа: ДДММ + порядковый номер за день, минимум две цифры (201001, 201002...).
    offset сдвигает номер, если предыдущий уже занят параллельным заказом.
    """
    now = now or datetime.now()
    prefix = now.strftime("%d%m")
    sequence = crud_order.count_orders_with_number_prefix(db, prefix) + 1 + offset
    return f"{prefix}{sequence:02d}"


def _build_order(db: Session, current_user: User, order_data: OrderCreate, offset: int) -> Order:
    items = [
        OrderItem(
            product_id=item.product_id,
            name=item.name,
            price=to_decimal(item.price),
            quantity=item.quantity,
            is_sample=item.is_sample,
        )
        for item in order_data.items
    ]
    subtotal = sum((item.price * item.quantity for item in items), Decimal("0"))
    subtotal_without_samples = eligible_subtotal(items)
    shipping_cost = to_decimal(order_data.shipping_cost)
    promo_discount = to_decimal(order_data.promo_discount)
    points_used = order_data.loyalty_points_used

    if promo_discount > subtotal:
        raise OrderValidationError("Скидка по промокоду не может превышать сумму заказа.")
    if points_used > subtotal_without_samples:
        raise OrderValidationError("Баллами можно оплатить не больше стоимости товаров (без пробников).")

    return Order(
        order_number=generate_order_number(db, offset=offset),
        user_id=current_user.id,
        email=order_data.email or current_user.email,
        store=order_data.store,
        status=OrderStatus.pending,
        subtotal=subtotal,
        subtotal_without_samples=subtotal_without_samples,
        shipping_cost=shipping_cost,
        promo_code=order_data.promo_code,
        promo_discount=promo_discount,
        loyalty_points_used=points_used,
        total_price=max(Decimal("0"), subtotal + shipping_cost - promo_discount - points_used),
        items=items,
    )


async def create_order(db: Session, current_user: User, order_data: OrderCreate) -> Order:
    """
    Оформляет заказ. Суммы считаются на сервере, списание баллов
    выполняется в той же транзакции, что и создание заказа.
    """
    user_id = current_user.id
    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        order = _build_order(db, current_user, order_data, offset=attempt)
        order_number = order.order_number
        db.add(order)
        try:
            db.flush()
            break
        except IntegrityError:
            # Номер занял параллельный заказ
            db.rollback()
            logger.warning(f"Order number {order_number} is already taken (attempt {attempt + 1})", exc_info=True)
    else:
        raise OrderConflictError("Не удалось присвоить номер заказу. Повторите попытку.")

    try:
        if order.loyalty_points_used > 0:
            # commit внутри: заказ и списание фиксируются вместе
            loyalty_service.spend_points(
                db, current_user, order.loyalty_points_used,
                f"Использовано при заказе #{order.order_number}", order=order,
            )
        else:
            db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Order creation failed for user {user_id}", exc_info=True)
        raise

    db.refresh(order)
    logger.info(f"Created order {order.id} (#{order.order_number}) for user {user_id}, total {order.total_price}")

    try:
        await notification_service.notify_new_order(db, order)
    except Exception:
        logger.error(f"Failed to dispatch new order notifications for order {order.id}", exc_info=True)

    return order


def list_user_orders(db: Session, current_user: User) -> List[Order]:
    return crud_order.get_user_orders(db, current_user.id)


def list_orders(db: Session, status: OrderStatus | None = None) -> List[Order]:
    return crud_order.get_orders(db, status=status)


async def update_order_status(db: Session, order_id: int, new_status: OrderStatus) -> Order:
    """
    Смена статуса заказа администратором.
    Начисление кешбэка и уведомления - побочные эффекты: их ошибки
    логируются, а смена статуса в любом случае сохраняется.
    """
    order = crud_order.get_order(db, order_id)
    if not order:
        raise OrderNotFoundError(f"Order with ID {order_id} not found.")

    old_status = order.status
    order.status = new_status
    db.commit()
    logger.info(f"Order {order_id} status updated from {old_status} to {new_status}")

    if new_status == OrderStatus.delivered and not order.loyalty_points_earned:
        loyalty_service.award_points_for_order(db, order)

    if old_status != new_status:
        try:
            await notification_service.notify_order_status_changed(db, order)
        except Exception:
            logger.error(f"Failed to dispatch status notifications for order {order_id}", exc_info=True)

    db.refresh(order)
    return order


async def set_tracking_number(db: Session, order_id: int, tracking_number: str) -> Order:
    """Сохраняет трек-номер и переводит заказ в статус 'shipped'."""
    order = crud_order.get_order(db, order_id)
    if not order:
        raise OrderNotFoundError(f"Order with ID {order_id} not found.")

    order.tracking_number = tracking_number
    order.status = OrderStatus.shipped
    db.commit()
    logger.info(f"Tracking number {tracking_number} set for order {order_id}")

    try:
        await notification_service.notify_tracking_number(db, order)
    except Exception:
        logger.error(f"Failed to dispatch tracking notifications for order {order_id}", exc_info=True)

    db.refresh(order)
    return order
