"""
Tests for member pricing.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from pickleclub.db.helpers import DatabaseError
from pickleclub.models.domain.pricing_domain import NO_MEMBERSHIP, EventCategory
from pickleclub.services import pricing_service

ULTIMATE = {"id": "m-1", "membership_type_id": 2, "membership_type_name": "ultimate"}


def _mock_lookups(monkeypatch, membership=None, event_type_id=7, discount=None):
    monkeypatch.setattr(
        "pickleclub.services.pricing_service.get_user_membership",
        AsyncMock(return_value=membership),
    )
    monkeypatch.setattr(
        "pickleclub.services.pricing_service.resolve_event_type_id",
        AsyncMock(return_value=event_type_id),
    )
    discount_mock = AsyncMock(return_value=discount)
    monkeypatch.setattr(
        "pickleclub.services.pricing_service.get_membership_discount", discount_mock
    )
    return discount_mock


@pytest.mark.asyncio
async def test_no_membership_returns_base_price(monkeypatch):
    discount_mock = _mock_lookups(monkeypatch, membership=None)

    pricing = await pricing_service.calculate_lesson_price("user-1", 75, 1)

    assert pricing.base_price == Decimal(75)
    assert pricing.final_price == Decimal(75)
    assert pricing.discount_amount == Decimal(0)
    assert pricing.discount_percentage == Decimal(0)
    assert pricing.membership_type == NO_MEMBERSHIP
    discount_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_lesson_discount_applied(monkeypatch):
    _mock_lookups(monkeypatch, membership=ULTIMATE, discount=Decimal(20))

    pricing = await pricing_service.calculate_lesson_price("user-1", 100, 2)

    assert pricing.base_price == Decimal(200)
    assert pricing.discount_amount == Decimal(40)
    assert pricing.final_price == Decimal(160)
    assert pricing.discount_percentage == Decimal(20)
    assert pricing.membership_type == "ultimate"


@pytest.mark.asyncio
async def test_court_price_uses_court_category(monkeypatch):
    _mock_lookups(monkeypatch, membership=ULTIMATE, discount=Decimal(50))
    resolve = pricing_service.resolve_event_type_id

    pricing = await pricing_service.calculate_court_price("user-1", Decimal("400"), Decimal("1.5"))

    resolve.assert_awaited_once_with(EventCategory.COURT)
    assert pricing.base_price == Decimal("600.0")
    assert pricing.final_price == Decimal("300.0")


@pytest.mark.asyncio
async def test_missing_discount_entry_falls_back_to_base(monkeypatch):
    _mock_lookups(monkeypatch, membership=ULTIMATE, discount=None)

    pricing = await pricing_service.calculate_lesson_price("user-1", 100, 1)

    assert pricing.final_price == Decimal(100)
    assert pricing.discount_percentage == Decimal(0)
    assert pricing.membership_type == "ultimate"


@pytest.mark.asyncio
async def test_missing_event_type_falls_back_to_base(monkeypatch):
    discount_mock = _mock_lookups(monkeypatch, membership=ULTIMATE, event_type_id=None)

    pricing = await pricing_service.calculate_court_price("user-1", 300, 1)

    assert pricing.final_price == Decimal(300)
    discount_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_zero_rate_and_duration(monkeypatch):
    _mock_lookups(monkeypatch, membership=ULTIMATE, discount=Decimal(20))

    pricing = await pricing_service.calculate_lesson_price("user-1", 0, 0)

    assert pricing.base_price == Decimal(0)
    assert pricing.final_price == Decimal(0)


def test_final_price_never_negative():
    pricing = pricing_service.apply_discount(Decimal(100), Decimal(150), "staff")

    assert pricing.discount_amount == Decimal(150)
    assert pricing.final_price == Decimal(0)


@pytest.mark.parametrize(
    "rate,duration,pct",
    [(0, 0, 0), (75, 1, 0), (100, 2, 20), (250, Decimal("1.5"), 15), (90, 3, 100)],
)
def test_pricing_formula(rate, duration, pct):
    base = Decimal(rate) * Decimal(duration)
    pricing = pricing_service.apply_discount(base, Decimal(pct), "standard")

    assert pricing.base_price == base
    assert pricing.final_price == max(Decimal(0), base - base * Decimal(pct) / 100)


@pytest.mark.asyncio
async def test_membership_lookup_error_is_no_membership(monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.pricing_service.fetch_one",
        AsyncMock(side_effect=DatabaseError("connection lost", "fetch_one")),
    )

    assert await pricing_service.get_user_membership("user-1") is None


@pytest.mark.asyncio
async def test_resolve_event_type_uses_court_patterns(monkeypatch):
    fetch = AsyncMock(return_value={"id": 3})
    monkeypatch.setattr("pickleclub.services.pricing_service.fetch_one", fetch)

    assert await pricing_service.resolve_event_type_id(EventCategory.COURT) == 3
    query, params = fetch.await_args.args
    assert "name ILIKE %s OR name ILIKE %s" in query
    assert params == ("%court%", "%reservation%")


def test_format_pricing_display():
    pricing = pricing_service.apply_discount(Decimal(1200), Decimal(20), "ultimate")

    display = pricing_service.format_pricing_display(pricing)

    assert display["base_price"] == "$1,200.00"
    assert display["discount_amount"] == "$240.00"
    assert display["final_price"] == "$960.00"
    assert display["discount_percentage"] == "20%"


@pytest.mark.asyncio
async def test_single_hour_pricing_is_one_hour_of_rate(monkeypatch):
    _mock_lookups(monkeypatch, membership=ULTIMATE, discount=Decimal(15))

    pricing = await pricing_service.calculate_single_hour_pricing("user-1", 80, EventCategory.COURT)

    assert pricing.base_price == Decimal(80)
    assert pricing.final_price == Decimal(68)
