# tests/conftest.py
import os

# Настройки должны быть заданы до импорта приложения
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.db.session import Base
from app.models import user, order, loyalty, notification # Импортируем все модели для создания таблиц
from app.models.order import Order, OrderItem, OrderStatus, Store
from app.models.user import User
from app.dependencies import get_db
from app.main import app
from app.services.auth import create_user_token

# In-memory SQLite; StaticPool - одно соединение на все потоки (эндпоинты работают в threadpool)
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Фикстура для создания чистой базы данных для каждого теста.
    """
    Base.metadata.create_all(bind=engine) # Создаем все таблицы
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine) # Очищаем все после теста


@pytest.fixture(scope="function")
def second_session(db_session: Session) -> Session:
    """Вторая независимая сессия к той же БД (параллельный обработчик)."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: Session):
    """AsyncClient поверх ASGI-приложения; get_db подменен тестовой сессией."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db_session: Session) -> User:
    user = User(email="customer@example.com", full_name="Test Customer")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> User:
    admin = User(email="admin@example.com", full_name="Test Admin", is_admin=True)
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(test_user.id)}"}


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(admin_user.id)}"}


@pytest.fixture
def make_order(db_session: Session):
    """
    Фабрика заказов напрямую в БД.
    amount - сумма обычных товаров, sample_amount - сумма пробников.
    """
    counter = {"n": 0}

    def _make_order(
        user: User,
        amount,
        status: OrderStatus = OrderStatus.pending,
        points_used: int = 0,
        sample_amount=0,
        loyalty_points_earned: bool = False,
    ) -> Order:
        counter["n"] += 1
        amount = Decimal(str(amount))
        sample_amount = Decimal(str(sample_amount))
        items = []
        if amount > 0:
            items.append(OrderItem(product_id="herb-1", name="Бальзам", price=amount, quantity=1))
        if sample_amount > 0:
            items.append(OrderItem(product_id="sample-1", name="Пробник", price=sample_amount, quantity=1, is_sample=True))
        order = Order(
            order_number=f"0101{counter['n']:02d}",
            user_id=user.id,
            email=user.email,
            store=Store.china,
            status=status,
            subtotal=amount + sample_amount,
            subtotal_without_samples=amount,
            loyalty_points_used=points_used,
            total_price=amount + sample_amount - points_used,
            loyalty_points_earned=loyalty_points_earned,
            items=items,
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make_order
