# app/schemas/loyalty.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal

from app.services.loyalty_tiers import TierThreshold

class LedgerEntry(BaseModel):
    id: str = Field(validation_alias="uid")
    points: int
    type: Literal["earned", "spent"]
    description: str
    order_id: int | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class TierInfo(BaseModel):
    name: str
    min_lifetime_spend: float
    cashback_percent: float

    @classmethod
    def from_threshold(cls, tier: TierThreshold) -> "TierInfo":
        return cls(
            name=tier.name,
            min_lifetime_spend=float(tier.min_lifetime_spend),
            cashback_percent=float(tier.percent),
        )

class LoyaltyInfo(BaseModel):
    points: int
    total_earned: int
    total_spent: int
    lifetime_total: float
    tier: str
    cashback_percent: float
    next_tier: TierInfo | None # null, если достигнут максимальный уровень
    amount_to_next_tier: float | None
    history: List[LedgerEntry]
