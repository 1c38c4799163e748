# app/crud/order.py

from typing import List
from sqlalchemy.orm import Session, selectinload

from app.models.order import Order, OrderStatus

def get_order(db: Session, order_id: int) -> Order | None:
    return db.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id).first()

def get_user_orders(db: Session, user_id: int) -> List[Order]:
    """Заказы пользователя от новых к старым."""
    return db.query(Order).options(selectinload(Order.items)).filter(
        Order.user_id == user_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()

def get_orders(db: Session, status: OrderStatus | None = None) -> List[Order]:
    query = db.query(Order).options(selectinload(Order.items))
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

def count_orders_with_number_prefix(db: Session, prefix: str) -> int:
    return db.query(Order).filter(Order.order_number.like(f"{prefix}%")).count()

def get_order_for_update(db: Session, order_id: int) -> Order | None:
    """
    Перечитывает заказ из БД под блокировкой строки (`SELECT ... FOR UPDATE`),
    перезаписывая состояние объекта в сессии.
    """
    return db.query(Order).filter(Order.id == order_id).with_for_update().populate_existing().first()
