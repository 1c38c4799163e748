# app/models/loyalty.py
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship


from app.db.session import Base

class LoyaltyAccount(Base):
    __tablename__ = "loyalty_accounts"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    points_balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    total_spent = Column(Integer, nullable=False, default=0)

    # Счетчик версий для оптимистичной блокировки баланса
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="loyalty_account")

    __mapper_args__ = {"version_id_col": version}


class LoyaltyLedgerEntry(Base):
    __tablename__ = "loyalty_ledger_entries"
    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Всегда положительное число, направление задает type
    points = Column(Integer, nullable=False)

    # 'earned' | 'spent'
    type = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")

    # Заказ, к которому привязана запись
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
