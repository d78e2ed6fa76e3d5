"""
Tests for membership listing and pre-payment checkout validation.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from pickleclub.db.helpers import DatabaseError
from pickleclub.services import membership_service

MODULE = "pickleclub.services.membership_service"

ULTIMATE_ROW = {"id": 2, "name": "ultimate", "cost_mxn": Decimal("450.00"), "stripe_product_id": "prod_u"}


def _fetch_one(membership_type=ULTIMATE_ROW, location=None, existing=None):
    location = {"id": 5} if location is None else location
    return AsyncMock(side_effect=[membership_type, location or None, existing])


@pytest.mark.asyncio
async def test_validate_checkout_valid(monkeypatch):
    monkeypatch.setattr(f"{MODULE}.fetch_one", _fetch_one())

    validation = await membership_service.validate_checkout(2, 5, "user-1")

    assert validation.valid is True
    assert validation.total_amount == Decimal("450.00")
    assert validation.currency == "mxn"
    assert validation.stripe_product_id == "prod_u"
    assert validation.errors == []


@pytest.mark.asyncio
async def test_validate_checkout_collects_all_errors(monkeypatch):
    monkeypatch.setattr(
        f"{MODULE}.fetch_one", _fetch_one(membership_type=None, location={}, existing={"id": "m-1"})
    )

    validation = await membership_service.validate_checkout(99, 404, "user-1")

    assert validation.valid is False
    assert validation.errors == [
        "Invalid membership type selected",
        "Invalid location selected",
        "You already have an active membership at this location",
    ]


@pytest.mark.asyncio
async def test_validate_checkout_rejects_admin_tier(monkeypatch):
    admin = {"id": 9, "name": "admin", "cost_mxn": Decimal("0"), "stripe_product_id": None}
    monkeypatch.setattr(f"{MODULE}.fetch_one", _fetch_one(membership_type=admin))

    validation = await membership_service.validate_checkout(9, 5, "user-1")

    assert validation.valid is False
    assert "Invalid membership type selected" in validation.errors


@pytest.mark.asyncio
async def test_validate_checkout_database_failure_is_invalid(monkeypatch):
    monkeypatch.setattr(
        f"{MODULE}.fetch_one", AsyncMock(side_effect=DatabaseError("Query failed", "fetch_one"))
    )

    validation = await membership_service.validate_checkout(2, 5, "user-1")

    assert validation.valid is False
    assert validation.errors == ["An error occurred during validation"]


@pytest.mark.asyncio
async def test_fetch_membership_types_hides_admin_and_attaches_discounts(monkeypatch):
    types = [
        {"id": 1, "name": "pay_to_play", "description": None, "cost_mxn": Decimal("0"), "stripe_product_id": None},
        {"id": 2, "name": "ultimate", "description": None, "cost_mxn": Decimal("450"), "stripe_product_id": "prod_u"},
        {"id": 9, "name": "admin", "description": None, "cost_mxn": Decimal("0"), "stripe_product_id": None},
    ]
    discounts = [
        {"membership_type_id": 2, "discount_percentage": Decimal("33"), "event_type": "lesson"},
        {"membership_type_id": 2, "discount_percentage": Decimal("33"), "event_type": None},
    ]
    monkeypatch.setattr(f"{MODULE}.fetch_all", AsyncMock(side_effect=[types, discounts]))

    result = await membership_service.fetch_membership_types()

    assert [t.name for t in result] == ["pay_to_play", "ultimate"]
    ultimate = result[1]
    assert ultimate.display_name == "Ultimate"
    assert ultimate.description == "Premium Experience with Maximum Benefits"
    assert [d.event_type for d in ultimate.discounts] == ["lesson", "Unknown"]
    assert result[0].display_name == "Pay to Play"
