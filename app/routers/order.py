# app/routers/order.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from app.dependencies import get_current_user, get_db
from app.models.user import User
from app.schemas.order import Order, OrderCreate
from app.services import order as order_service
from app.services.exceptions import (
    InsufficientPointsError, LoyaltyConflictError, OrderConflictError, OrderValidationError
)

router = APIRouter()

@router.post("/orders", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_new_order(
    order_data: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Оформление заказа. Если указаны loyalty_points_used, баллы списываются сразу.
    """
    try:
        return await order_service.create_order(db, current_user, order_data)
    except OrderValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)
    except (InsufficientPointsError, LoyaltyConflictError, OrderConflictError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.detail)


@router.get("/orders", response_model=List[Order])
def get_orders_history(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    История заказов текущего пользователя (от новых к старым).
    """
    return order_service.list_user_orders(db, current_user)
