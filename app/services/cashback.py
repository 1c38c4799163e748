# app/services/cashback.py
"""
Прогрессивный расчет кешбэка.

Сумма заказа "проходит" по лестнице уровней, начиная с пожизненных покупок
до этого заказа: часть суммы до следующего порога начисляется по текущей
ставке, остаток - по ставке следующего уровня и т.д.

Пример: до заказа куплено на 48 000, заказ на 5 000.
2 000 идут по 3%, оставшиеся 3 000 - по 5%: 60 + 150 = 210 баллов.
"""
import math
from decimal import Decimal
from typing import Any, Iterable, Sequence

from app.services.loyalty_tiers import DEFAULT_TIERS, TierThreshold, next_tier, resolve_tier, to_decimal


def eligible_subtotal(items: Iterable[Any]) -> Decimal:
    """
    Сумма позиций без пробников. Принимает OrderItem или любые объекты
    с атрибутами price, quantity, is_sample.
    """
    total = Decimal("0")
    for item in items:
        if getattr(item, "is_sample", False):
            continue
        total += to_decimal(item.price) * int(item.quantity or 0)
    return total


def cashback_base(subtotal_without_samples: Any, points_used: int = 0) -> Decimal:
    """Баллы начисляются только на реально оплаченную сумму (без списанных баллов)."""
    base = to_decimal(subtotal_without_samples) - to_decimal(points_used or 0)
    return max(Decimal("0"), base)


def calculate_progressive_cashback(
    amount: Any,
    lifetime_before: Any,
    tiers: Sequence[TierThreshold] = DEFAULT_TIERS,
) -> int:
    """Количество баллов за заказ; результат округляется вниз один раз, в конце."""
    remaining = to_decimal(amount)
    if remaining <= 0:
        return 0

    position = max(Decimal("0"), to_decimal(lifetime_before))
    points = Decimal("0")

    while remaining > 0:
        rate = resolve_tier(position, tiers).rate
        upcoming = next_tier(position, tiers)
        if upcoming is None:
            segment = remaining
        else:
            segment = min(remaining, upcoming.min_lifetime_spend - position)

        points += segment * rate
        remaining -= segment
        position += segment

    return math.floor(points)
