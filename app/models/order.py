# app/models/order.py
import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, func
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class OrderStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class Store(str, enum.Enum):
    china = "china"
    thailand = "thailand"
    vietnam = "vietnam"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    # Формат: ДДММ + порядковый номер за день (например, 201001)
    order_number = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    email = Column(String, nullable=True)
    store = Column(Enum(Store, native_enum=False), nullable=False, default=Store.china)
    status = Column(Enum(OrderStatus, native_enum=False), nullable=False, default=OrderStatus.pending, index=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    # Сумма без пробников - база для кешбэка и пожизненных покупок
    subtotal_without_samples = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    promo_code = Column(String, nullable=True)
    promo_discount = Column(Numeric(12, 2), nullable=False, default=0)
    loyalty_points_used = Column(Integer, nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)

    # Флаг однократного начисления кешбэка (not-earned -> earned)
    loyalty_points_earned = Column(Boolean, nullable=False, default=False, server_default='false')
    points_earned = Column(Integer, nullable=False, default=0)

    tracking_number = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    # Пробники не участвуют в программе лояльности
    is_sample = Column(Boolean, nullable=False, default=False, server_default='false')

    order = relationship("Order", back_populates="items")
