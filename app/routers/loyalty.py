# app/routers/loyalty.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.dependencies import get_current_user, get_db
from app.models.user import User
from app.schemas.loyalty import LoyaltyInfo, TierInfo
from app.services import loyalty as loyalty_service
from app.services.loyalty_tiers import get_configured_tiers

router = APIRouter()

# /loyalty и /loyalty/info отдают одно и то же (совместимость с клиентом)
@router.get("/loyalty", response_model=LoyaltyInfo)
@router.get("/loyalty/info", response_model=LoyaltyInfo)
def get_user_loyalty_info(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Баланс баллов, текущий уровень, прогресс до следующего уровня и история.
    """
    return loyalty_service.get_loyalty_info(db, current_user)


@router.get("/loyalty/tiers", response_model=List[TierInfo])
def get_loyalty_tiers():
    """Публичная таблица уровней программы лояльности."""
    return [TierInfo.from_threshold(tier) for tier in get_configured_tiers()]
