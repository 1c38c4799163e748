# app/services/user_levels.py
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.crud import user as crud_user
from app.services.loyalty import get_lifetime_spend
from app.services.loyalty_tiers import get_configured_tiers, resolve_tier
import logging

logger = logging.getLogger(__name__)


def refresh_tiers(db: Session) -> int:
    """
    Пересчитывает кешированный уровень лояльности всех пользователей
    по сумме доставленных заказов. Возвращает число измененных пользователей.
    """
    tiers = get_configured_tiers()
    updated = 0
    for user in crud_user.get_all_users(db):
        lifetime_spend = get_lifetime_spend(db, user.id)
        new_tier = resolve_tier(lifetime_spend, tiers).name

        if user.loyalty_tier != new_tier:
            logger.info(f"Updating user {user.id} tier from '{user.loyalty_tier}' to '{new_tier}' (spent: {lifetime_spend})")
            user.loyalty_tier = new_tier
            updated += 1

    db.commit()
    return updated


def refresh_user_tiers():
    """
    Основная задача планировщика.
    Проходит по всем пользователям и обновляет их уровни лояльности.
    """
    logger.info("--- Starting scheduled job: Refresh Loyalty Tiers ---")
    db: Session = SessionLocal()
    try:
        updated = refresh_tiers(db)
    finally:
        db.close()
    logger.info(f"--- Finished scheduled job: Refresh Loyalty Tiers ({updated} users updated) ---")
