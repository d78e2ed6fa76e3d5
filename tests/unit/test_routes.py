"""
Tests for the member-facing API routes with auth overridden.
"""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from pickleclub.db.helpers import DatabaseError
from pickleclub.main import app
from pickleclub.models.domain.membership_domain import (
    CheckoutValidation,
    Location,
    MembershipTypeRef,
    UserMembership,
)
from pickleclub.models.domain.pricing_domain import PricingCalculation
from pickleclub.models.domain.user_domain import UserProfile
from pickleclub.services.profile_service import ProfileServiceError

PROFILE = UserProfile(id="user-123", email="player@example.com", first_name="Ana", last_name="López")


@pytest.fixture
def client(apply_auth_override, fake_redis, monkeypatch):
    apply_auth_override(app)
    monkeypatch.setattr("pickleclub.routes.profile.redis_cache", fake_redis)
    return TestClient(app)


def test_me_requires_auth():
    response = TestClient(app).get("/me")

    assert response.status_code in (401, 403)


def test_me_returns_profile_and_missing_fields(client, fake_redis, monkeypatch):
    get_profile = AsyncMock(return_value=PROFILE)
    monkeypatch.setattr("pickleclub.services.profile_service.get_user_profile", get_profile)

    response = client.get("/me")

    assert response.status_code == 200
    data = response.json()
    assert data["profile"]["first_name"] == "Ana"
    assert data["auth"]["user_id"] == "user-123"
    assert data["checkout_ready"] is False
    assert data["missing_fields"] == ["phone"]
    assert "profile:user-123" in fake_redis.store

    # Second request is served from the cache
    client.get("/me")
    get_profile.assert_awaited_once()


def test_me_missing_profile_is_404(client, monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.profile_service.get_user_profile", AsyncMock(return_value=None)
    )

    assert client.get("/me").status_code == 404


def test_update_me_invalidates_cache(client, fake_redis, monkeypatch):
    fake_redis.store["profile:user-123"] = PROFILE.model_dump_json()
    updated = PROFILE.model_copy(update={"phone": "+525512345678"})
    update = AsyncMock(return_value=updated)
    monkeypatch.setattr("pickleclub.services.profile_service.update_user_profile", update)

    response = client.put("/me", json={"phone": "+525512345678"})

    assert response.status_code == 200
    assert response.json()["checkout_ready"] is True
    update.assert_awaited_once_with("user-123", {"phone": "+525512345678"})
    assert "profile:user-123" not in fake_redis.store


def test_update_me_rejected_is_400(client, monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.profile_service.update_user_profile",
        AsyncMock(side_effect=ProfileServiceError("Invalid phone number", field="phone")),
    )

    response = client.put("/me", json={"phone": "abc"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid phone number"


def test_update_me_unknown_field_is_422(client):
    assert client.put("/me", json={"role": "admin"}).status_code == 422


def test_membership_types_unavailable_is_503(client, monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.membership_service.fetch_membership_types",
        AsyncMock(side_effect=DatabaseError("Query failed", "fetch_all")),
    )

    assert client.get("/memberships/types").status_code == 503


def test_my_memberships_selects_newest_active(client, monkeypatch):
    def membership(id_, start):
        return UserMembership(
            id=id_,
            user_id="user-123",
            membership_type=MembershipTypeRef(id=2, name="ultimate"),
            status="active",
            start_date=start,
        )

    monkeypatch.setattr(
        "pickleclub.services.membership_service.fetch_user_active_memberships",
        AsyncMock(
            return_value=[
                membership("old", datetime(2025, 1, 1, tzinfo=UTC)),
                membership("new", datetime(2026, 1, 1, tzinfo=UTC)),
            ]
        ),
    )
    monkeypatch.setattr(
        "pickleclub.services.membership_service.fetch_user_membership_history",
        AsyncMock(return_value=[]),
    )

    response = client.get("/memberships/me")

    assert response.status_code == 200
    assert response.json()["active_membership"]["id"] == "new"


def test_checkout_validate_defaults_location(client, monkeypatch):
    validate = AsyncMock(return_value=CheckoutValidation(valid=True, total_amount=Decimal("450")))
    monkeypatch.setattr("pickleclub.services.membership_service.validate_checkout", validate)

    response = client.post("/memberships/checkout/validate", json={"membership_type_id": 2})

    assert response.status_code == 200
    assert response.json()["valid"] is True
    validate.assert_awaited_once_with(2, 5, "user-123")


def test_lesson_pricing_display(client, monkeypatch):
    pricing = PricingCalculation(
        base_price=Decimal("600"),
        discount_amount=Decimal("198"),
        final_price=Decimal("402"),
        discount_percentage=Decimal("33"),
        membership_type="Ultimate",
    )
    calculate = AsyncMock(return_value=pricing)
    monkeypatch.setattr("pickleclub.services.pricing_service.calculate_lesson_price", calculate)

    response = client.get("/pricing/lessons", params={"rate": "600"})

    assert response.status_code == 200
    assert response.json()["display"]["final_price"] == "$402.00"
    assert response.json()["display"]["discount_percentage"] == "33%"


def test_register_push_token(client, monkeypatch):
    register = AsyncMock()
    monkeypatch.setattr("pickleclub.routes.notifications.register_push_token", register)

    response = client.post(
        "/notifications/push-tokens",
        json={"push_token": "ExponentPushToken[x]", "device_id": "device-1", "platform": "ios"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    register.assert_awaited_once_with("user-123", "ExponentPushToken[x]", "device-1", "ios")


def test_register_push_token_rejects_unknown_platform(client):
    response = client.post(
        "/notifications/push-tokens",
        json={"push_token": "tok", "device_id": "device-1", "platform": "blackberry"},
    )

    assert response.status_code == 422


def test_locations_listing(client, monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.membership_service.fetch_locations",
        AsyncMock(return_value=[Location(id=5, name="Polanco")]),
    )

    response = client.get("/memberships/locations")

    assert response.status_code == 200
    assert response.json()["locations"][0]["name"] == "Polanco"
