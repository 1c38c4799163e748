# app/services/loyalty.py

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.crud import loyalty as crud_loyalty
from app.crud import order as crud_order
from app.models.loyalty import LoyaltyAccount
from app.models.order import Order
from app.models.user import User
from app.schemas.loyalty import LoyaltyInfo, LedgerEntry, TierInfo
from app.services.cashback import calculate_progressive_cashback, cashback_base
from app.services.exceptions import InsufficientPointsError, LoyaltyConflictError
from app.services.loyalty_tiers import (
    amount_to_next_tier, get_configured_tiers, next_tier, resolve_tier
)

logger = logging.getLogger(__name__)

EARNED = "earned"
SPENT = "spent"


def get_lifetime_spend(db: Session, user_id: int, exclude_order_id: int | None = None) -> Decimal:
    """
    Сумма пожизненных покупок: только доставленные заказы, без пробников.
    При ошибке чтения возвращает 0 (расчет продолжится по базовому уровню).
    """
    try:
        total = crud_loyalty.sum_delivered_subtotals(db, user_id, exclude_order_id=exclude_order_id)
    except SQLAlchemyError:
        logger.error(f"Failed to calculate lifetime spend for user {user_id}. Treating as 0.", exc_info=True)
        db.rollback()
        return Decimal("0")
    logger.info(f"Lifetime spend for user {user_id}: {total}")
    return total


def update_user_loyalty(
    db: Session,
    user_id: int,
    points: int,
    type: str,
    description: str,
    order: Order | None = None,
) -> LoyaltyAccount:
    """
    Начисляет или списывает баллы, добавляет запись в журнал и, при начислении
    за заказ, ставит на заказе флаг loyalty_points_earned. Все изменения
    фиксируются одним commit.
    """
    if points <= 0:
        raise ValueError("Количество баллов должно быть положительным.")
    if type not in (EARNED, SPENT):
        raise ValueError(f"Unknown ledger entry type: {type}")

    try:
        account = crud_loyalty.get_or_create_account(db, user_id, lock=True)
        if type == EARNED:
            account.points_balance += points
            account.total_earned += points
        else:
            account.points_balance -= points
            account.total_spent += points

        crud_loyalty.create_entry(
            db, user_id=user_id, points=points, type=type,
            description=description, order_id=order.id if order is not None else None,
        )
        if order is not None and type == EARNED:
            order.loyalty_points_earned = True
            order.points_earned = points
            db.add(order)

        db.flush()
        crud_loyalty.trim_user_history(db, user_id, keep=settings.LOYALTY_HISTORY_LIMIT)
        db.commit()
    except (StaleDataError, IntegrityError):
        db.rollback()
        logger.warning(f"Loyalty account of user {user_id} was modified concurrently.", exc_info=True)
        raise LoyaltyConflictError("Баланс баллов изменился. Повторите операцию.")

    db.refresh(account)
    logger.info(
        f"Loyalty {type} {points} points for user {user_id}. "
        f"Balance: {account.points_balance} (version {account.version})"
    )
    return account


def spend_points(db: Session, user: User, points_to_spend: int, description: str, order: Order | None = None) -> LoyaltyAccount:
    """
    Списывает баллы при оформлении заказа.
    Это часть основного сценария, поэтому ошибки пробрасываются вызывающему коду.
    """
    if points_to_spend <= 0:
        raise ValueError("Количество списываемых баллов должно быть положительным.")

    try:
        account = crud_loyalty.get_or_create_account(db, user.id, lock=True)
    except IntegrityError:
        # Счет одновременно создал другой запрос
        db.rollback()
        logger.warning(f"Loyalty account of user {user.id} was created concurrently.", exc_info=True)
        raise LoyaltyConflictError("Баланс баллов изменился. Повторите операцию.")
    if points_to_spend > account.points_balance:
        raise InsufficientPointsError(
            f"Недостаточно бонусных баллов: доступно {account.points_balance}, запрошено {points_to_spend}."
        )
    return update_user_loyalty(db, user.id, points_to_spend, SPENT, description, order=order)


def award_points_for_order(db: Session, order: Order) -> int:
    """
    Однократное начисление кешбэка за доставленный заказ.
    Ошибки логируются и не пробрасываются: смена статуса уже сохранена.
    Возвращает количество начисленных баллов.
    """
    if order.loyalty_points_earned:
        logger.info(f"Order {order.id} already earned loyalty points. Skipping.")
        return 0
    if not order.user_id:
        return 0

    order_id = order.id
    try:
        # Флаг мог выставить параллельный обработчик той же доставки:
        # перечитываем заказ под блокировкой до конца транзакции
        order = crud_order.get_order_for_update(db, order_id)
        if order is None or order.loyalty_points_earned:
            db.rollback()
            logger.info(f"Order {order_id} already earned loyalty points. Skipping.")
            return 0

        base = cashback_base(order.subtotal_without_samples, order.loyalty_points_used)
        if base <= 0:
            db.rollback()
            logger.info(f"No eligible amount for loyalty points in order {order_id} (samples only or paid with points).")
            return 0

        tiers = get_configured_tiers()
        lifetime_before = get_lifetime_spend(db, order.user_id, exclude_order_id=order_id)
        points = calculate_progressive_cashback(base, lifetime_before, tiers)
        if points <= 0:
            db.rollback()
            logger.info(f"Order {order_id} amount {base} is too small to earn points.")
            return 0

        update_user_loyalty(
            db, order.user_id, points, EARNED,
            f"Начислено за заказ #{order.order_number}", order=order,
        )
        logger.info(
            f"Awarded {points} points to user {order.user_id} for order {order_id} "
            f"(base {base}, lifetime before {lifetime_before})"
        )
        return points
    except Exception:
        logger.error(f"Error awarding loyalty points for order {order_id}", exc_info=True)
        db.rollback()
        return 0


def get_loyalty_info(db: Session, user: User) -> LoyaltyInfo:
    """Собирает баланс, уровень, прогресс до следующего уровня и историю."""
    account = crud_loyalty.get_account(db, user.id)
    tiers = get_configured_tiers()
    lifetime_total = get_lifetime_spend(db, user.id)
    current = resolve_tier(lifetime_total, tiers)
    upcoming = next_tier(lifetime_total, tiers)
    history = crud_loyalty.get_user_history(db, user.id, limit=settings.LOYALTY_HISTORY_LIMIT)

    return LoyaltyInfo(
        points=account.points_balance if account else 0,
        total_earned=account.total_earned if account else 0,
        total_spent=account.total_spent if account else 0,
        lifetime_total=lifetime_total,
        tier=current.name,
        cashback_percent=current.percent,
        next_tier=TierInfo.from_threshold(upcoming) if upcoming else None,
        amount_to_next_tier=amount_to_next_tier(lifetime_total, tiers),
        history=[LedgerEntry.model_validate(entry) for entry in history],
    )
