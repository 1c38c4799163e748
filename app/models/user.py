# app/models/user.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from app.db.session import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    is_admin = Column(Boolean, default=False, nullable=False, server_default='false')
    # Кешированный уровень лояльности, пересчитывается ночной задачей.
    # Источник истины - сумма доставленных заказов.
    loyalty_tier = Column(String, default="basic", nullable=False, server_default='basic')

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    orders = relationship("Order", back_populates="user")
    loyalty_account = relationship("LoyaltyAccount", back_populates="user", uselist=False)
