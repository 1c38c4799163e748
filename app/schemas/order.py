# app/schemas/order.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List
from datetime import datetime

from app.models.order import OrderStatus, Store


# Позиция заказа при оформлении
class OrderItemCreate(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    is_sample: bool = False


class OrderCreate(BaseModel):
    store: Store = Store.china
    email: EmailStr | None = None
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_cost: float = Field(0, ge=0)
    promo_code: str | None = None
    promo_discount: float = Field(0, ge=0)
    loyalty_points_used: int = Field(0, ge=0)


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int
    is_sample: bool

    class Config:
        from_attributes = True


# Схема ответа с деталями заказа
class Order(BaseModel):
    id: int
    order_number: str
    user_id: int
    email: str | None = None
    store: Store
    status: OrderStatus
    subtotal: float
    subtotal_without_samples: float
    shipping_cost: float
    promo_code: str | None = None
    promo_discount: float
    loyalty_points_used: int
    total_price: float
    loyalty_points_earned: bool
    points_earned: int
    tracking_number: str | None = None
    created_at: datetime
    items: List[OrderItem]

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderTrackingUpdate(BaseModel):
    tracking_number: str = Field(..., min_length=1)

    @field_validator('tracking_number', mode='before')
    @classmethod
    def strip_tracking_number(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v
