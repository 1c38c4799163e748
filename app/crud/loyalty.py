# app/crud/loyalty.py

from decimal import Decimal
from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry
from app.models.order import Order, OrderStatus

# --- Счет лояльности ---

def get_account(db: Session, user_id: int) -> LoyaltyAccount | None:
    return db.get(LoyaltyAccount, user_id)

def get_or_create_account(db: Session, user_id: int, lock: bool = False) -> LoyaltyAccount:
    """
    Возвращает счет пользователя, создавая его при первом обращении.
    Новый счет только добавляется в сессию, commit делает вызывающий код.
    lock=True блокирует строку счета (`SELECT ... FOR UPDATE`).
    """
    query = db.query(LoyaltyAccount).filter(LoyaltyAccount.user_id == user_id)
    if lock:
        query = query.with_for_update()
    account = query.first()
    if account is None:
        account = LoyaltyAccount(user_id=user_id, points_balance=0, total_earned=0, total_spent=0)
        db.add(account)
        db.flush()
    return account

# --- Журнал начислений и списаний ---

def create_entry(
    db: Session,
    user_id: int,
    points: int,
    type: str,
    description: str,
    order_id: int | None = None,
) -> LoyaltyLedgerEntry:
    """
    Создает запись журнала и добавляет ее в сессию.
    Требует внешнего вызова db.commit().
    """
    entry = LoyaltyLedgerEntry(
        user_id=user_id,
        points=points,
        type=type,
        description=description,
        order_id=order_id,
    )
    db.add(entry)
    return entry

def get_user_history(db: Session, user_id: int, limit: int = 100) -> List[LoyaltyLedgerEntry]:
    """История пользователя от новых к старым."""
    return db.query(LoyaltyLedgerEntry).filter(
        LoyaltyLedgerEntry.user_id == user_id
    ).order_by(LoyaltyLedgerEntry.id.desc()).limit(limit).all()

def count_user_entries(db: Session, user_id: int) -> int:
    return db.query(LoyaltyLedgerEntry).filter(LoyaltyLedgerEntry.user_id == user_id).count()

def trim_user_history(db: Session, user_id: int, keep: int) -> int:
    """
    Удаляет самые старые записи сверх лимита `keep`.
    Возвращает количество удаленных записей.
    """
    stale_ids = [
        row.id for row in db.query(LoyaltyLedgerEntry.id).filter(
            LoyaltyLedgerEntry.user_id == user_id
        ).order_by(LoyaltyLedgerEntry.id.desc()).offset(keep).all()
    ]
    if not stale_ids:
        return 0
    return db.query(LoyaltyLedgerEntry).filter(
        LoyaltyLedgerEntry.id.in_(stale_ids)
    ).delete(synchronize_session=False)

# --- Расчетные функции ---

def sum_delivered_subtotals(db: Session, user_id: int, exclude_order_id: int | None = None) -> Decimal:
    """Сумма (без пробников) всех доставленных заказов пользователя."""
    query = db.query(func.sum(Order.subtotal_without_samples)).filter(
        Order.user_id == user_id,
        Order.status == OrderStatus.delivered,
    )
    if exclude_order_id is not None:
        query = query.filter(Order.id != exclude_order_id)
    total = query.scalar()
    return Decimal(str(total)) if total is not None else Decimal("0")
