# app/services/loyalty_tiers.py
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierThreshold:
    name: str
    min_lifetime_spend: Decimal
    rate: Decimal

    @property
    def percent(self) -> Decimal:
        return self.rate * 100


def to_decimal(value: Any) -> Decimal:
    """Приводит число/строку к Decimal без артефактов float (0.07 -> Decimal('0.07'))."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def validate_tiers(tiers: Sequence[TierThreshold]) -> List[TierThreshold]:
    """
    Проверяет таблицу уровней: первый порог равен 0, пороги строго
    возрастают, ставки не убывают и лежат в [0, 1].
    """
    tiers = list(tiers)
    if not tiers:
        raise ValueError("Loyalty tier table is empty")
    if tiers[0].min_lifetime_spend != 0:
        raise ValueError("The first loyalty tier must start at 0")

    for tier in tiers:
        if not Decimal("0") <= tier.rate <= Decimal("1"):
            raise ValueError(f"Tier '{tier.name}' has rate {tier.rate} outside [0, 1]")

    for prev, curr in zip(tiers, tiers[1:]):
        if curr.min_lifetime_spend <= prev.min_lifetime_spend:
            raise ValueError(
                f"Tier thresholds must be strictly increasing: "
                f"'{prev.name}' ({prev.min_lifetime_spend}) >= '{curr.name}' ({curr.min_lifetime_spend})"
            )
        if curr.rate < prev.rate:
            raise ValueError(f"Tier rates must be non-decreasing: '{curr.name}' ({curr.rate}) < '{prev.name}' ({prev.rate})")
    return tiers


def parse_tiers(raw_tiers: Iterable[Dict[str, Any]]) -> List[TierThreshold]:
    """Строит и валидирует таблицу уровней из конфигурации (LOYALTY_TIERS_JSON)."""
    tiers = [
        TierThreshold(
            name=str(item["name"]),
            min_lifetime_spend=to_decimal(item["min_lifetime_spend"]),
            rate=to_decimal(item["rate"]),
        )
        for item in raw_tiers
    ]
    return validate_tiers(tiers)


DEFAULT_TIERS: List[TierThreshold] = validate_tiers([
    TierThreshold("basic", Decimal("0"), Decimal("0.03")),
    TierThreshold("silver", Decimal("50000"), Decimal("0.05")),
    TierThreshold("gold", Decimal("100000"), Decimal("0.07")),
    TierThreshold("platinum", Decimal("200000"), Decimal("0.10")),
])


def get_configured_tiers() -> List[TierThreshold]:
    """Таблица уровней из настроек; при ошибке в конфиге - уровни по умолчанию."""
    try:
        return parse_tiers(settings.LOYALTY_TIERS)
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Invalid LOYALTY_TIERS_JSON, falling back to default tiers: {e}")
        return DEFAULT_TIERS


def resolve_tier(lifetime_spend: Any, tiers: Sequence[TierThreshold] = DEFAULT_TIERS) -> TierThreshold:
    """
    Определяет уровень по сумме пожизненных покупок.
    Граница включительная: ровно 50 000 - это уже silver.
    """
    spend = to_decimal(lifetime_spend)
    # Идем от самого высокого порога к низкому
    for tier in reversed(tiers):
        if spend >= tier.min_lifetime_spend:
            return tier
    return tiers[0]


def resolve_rate(lifetime_spend: Any, tiers: Sequence[TierThreshold] = DEFAULT_TIERS) -> Decimal:
    return resolve_tier(lifetime_spend, tiers).rate


def next_tier(lifetime_spend: Any, tiers: Sequence[TierThreshold] = DEFAULT_TIERS) -> Optional[TierThreshold]:
    """Следующий уровень или None, если достигнут максимальный."""
    spend = to_decimal(lifetime_spend)
    for tier in tiers:
        if tier.min_lifetime_spend > spend:
            return tier
    return None


def amount_to_next_tier(lifetime_spend: Any, tiers: Sequence[TierThreshold] = DEFAULT_TIERS) -> Optional[Decimal]:
    upcoming = next_tier(lifetime_spend, tiers)
    if upcoming is None:
        return None
    return upcoming.min_lifetime_spend - to_decimal(lifetime_spend)
