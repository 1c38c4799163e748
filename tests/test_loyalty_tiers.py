# tests/test_loyalty_tiers.py

import pytest
from decimal import Decimal

from app.core.config import settings
from app.services.loyalty_tiers import (
    DEFAULT_TIERS, TierThreshold, amount_to_next_tier, get_configured_tiers,
    next_tier, parse_tiers, resolve_rate, resolve_tier, validate_tiers,
)


@pytest.mark.parametrize("lifetime_spend, expected", [
    (0, "basic"),
    (Decimal("49999.99"), "basic"),
    (50000, "silver"),
    (Decimal("99999.99"), "silver"),
    (100000, "gold"),
    (199999, "gold"),
    (200000, "platinum"),
    (10_000_000, "platinum"),
])
def test_resolve_tier_boundaries(lifetime_spend, expected):
    assert resolve_tier(lifetime_spend).name == expected


def test_resolve_tier_negative_spend_is_basic():
    assert resolve_tier(-500).name == "basic"


def test_resolve_rate_accepts_strings_and_floats():
    assert resolve_rate("50000") == Decimal("0.05")
    assert resolve_rate(150000.0) == Decimal("0.07")


def test_next_tier_and_remaining_amount():
    upcoming = next_tier(48000)
    assert upcoming.name == "silver"
    assert amount_to_next_tier(48000) == Decimal("2000")

    # Ровно на границе следующим считается уже gold
    assert next_tier(50000).name == "gold"
    assert amount_to_next_tier(50000) == Decimal("50000")


def test_no_next_tier_at_maximum():
    assert next_tier(250000) is None
    assert amount_to_next_tier(250000) is None


def test_tier_percent():
    assert [tier.percent for tier in DEFAULT_TIERS] == [Decimal("3"), Decimal("5"), Decimal("7"), Decimal("10")]


def test_configured_tiers_match_defaults():
    assert parse_tiers(settings.LOYALTY_TIERS) == DEFAULT_TIERS
    assert get_configured_tiers() == DEFAULT_TIERS


@pytest.mark.parametrize("tiers", [
    [],
    # Первый порог не 0
    [TierThreshold("basic", Decimal("100"), Decimal("0.03"))],
    # Пороги не возрастают
    [TierThreshold("basic", Decimal("0"), Decimal("0.03")), TierThreshold("silver", Decimal("0"), Decimal("0.05"))],
    # Ставка убывает
    [TierThreshold("basic", Decimal("0"), Decimal("0.05")), TierThreshold("silver", Decimal("50000"), Decimal("0.03"))],
    # Ставка больше 100%
    [TierThreshold("basic", Decimal("0"), Decimal("1.5"))],
])
def test_validate_tiers_rejects_bad_tables(tiers):
    with pytest.raises(ValueError):
        validate_tiers(tiers)


def test_invalid_config_falls_back_to_defaults(monkeypatch):
    monkeypatch.setattr(settings, "LOYALTY_TIERS_JSON", '[{"name": "basic", "min_lifetime_spend": "10", "rate": "0.03"}]')
    assert get_configured_tiers() == DEFAULT_TIERS


def test_custom_tiers_from_config(monkeypatch):
    monkeypatch.setattr(
        settings, "LOYALTY_TIERS_JSON",
        '[{"name": "start", "min_lifetime_spend": 0, "rate": 0.01},'
        ' {"name": "vip", "min_lifetime_spend": 1000, "rate": 0.2}]'
    )
    tiers = get_configured_tiers()
    assert [tier.name for tier in tiers] == ["start", "vip"]
    # float из JSON не должен давать артефактов вида 0.0100000000000000002
    assert tiers[0].rate == Decimal("0.01")
    assert resolve_tier(1000, tiers).name == "vip"
