# app/routers/admin.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.dependencies import get_admin_user, get_db
from app.models.order import OrderStatus
from app.schemas.order import Order, OrderStatusUpdate, OrderTrackingUpdate
from app.services import order as order_service
from app.services.exceptions import OrderNotFoundError

logger = logging.getLogger(__name__)

# Все эндпоинты роутера доступны только администраторам
router = APIRouter(dependencies=[Depends(get_admin_user)])


@router.get("/orders", response_model=List[Order])
def get_orders_list(
    status: OrderStatus | None = Query(default=None, description="Фильтр по статусу: pending, processing, shipped, delivered, cancelled"),
    db: Session = Depends(get_db)
):
    """
    [АДМИН] Возвращает список всех заказов (от новых к старым).
    """
    return order_service.list_orders(db, status=status)


@router.put("/orders/{order_id}/status", response_model=Order)
async def update_order_status_endpoint(
    order_id: int,
    status_update: OrderStatusUpdate,
    db: Session = Depends(get_db)
):
    """
    [АДМИН] Обновляет статус заказа. При переходе в 'delivered' начисляется кешбэк.
    """
    try:
        return await order_service.update_order_status(db, order_id, status_update.status)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.put("/orders/{order_id}/tracking", response_model=Order)
async def set_tracking_number_endpoint(
    order_id: int,
    tracking_update: OrderTrackingUpdate,
    db: Session = Depends(get_db)
):
    """
    [АДМИН] Сохраняет трек-номер и переводит заказ в статус 'shipped'.
    """
    try:
        return await order_service.set_tracking_number(db, order_id, tracking_update.tracking_number)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
