"""
Tests for reminder formatting, Expo push delivery, and push-token registration.
"""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from pickleclub.db.helpers import DatabaseError
from pickleclub.models.domain.notification_domain import (
    DeviceInfo,
    NotificationType,
    Platform,
    ReminderCandidate,
)
from pickleclub.services.notifications import (
    ExpoPushClient,
    NotificationRegistrar,
    PushDeliveryError,
    format_reminder,
    format_time_12h,
    register_push_token,
)

PUSH_URL = "https://push.test/send"


@pytest.mark.parametrize(
    "hour,minute,expected",
    [(0, 5, "12:05 AM"), (9, 0, "9:00 AM"), (12, 30, "12:30 PM"), (23, 45, "11:45 PM")],
)
def test_format_time_12h(hour, minute, expected):
    assert format_time_12h(datetime(2026, 1, 1, hour, minute, tzinfo=UTC), "UTC") == expected


def test_format_time_uses_club_timezone():
    # 02:00 UTC is 20:00 the previous evening in Mexico City
    assert format_time_12h(datetime(2026, 1, 2, 2, 0, tzinfo=UTC), "America/Mexico_City") == "8:00 PM"


def test_reservation_without_court_name():
    candidate = ReminderCandidate(
        registration_id="reg-1",
        user_id="user-1",
        event_id="event-1",
        start_time=datetime(2026, 1, 1, 15, 0, tzinfo=UTC),
    )

    message = format_reminder(candidate, NotificationType.HOUR_BEFORE, "UTC")

    assert message.title == "Court Reservation - 1 hour"
    assert message.body == "Your court reservation starts in 1 hour at 3:00 PM"


def test_lesson_without_court():
    candidate = ReminderCandidate(
        registration_id="reg-1",
        user_id="user-1",
        event_id="event-1",
        start_time=datetime(2026, 1, 1, 15, 0, tzinfo=UTC),
        coach_first_name="Sofía",
        coach_last_name="Ruiz",
    )

    message = format_reminder(candidate, NotificationType.DAY_BEFORE, "UTC")

    assert message.title == "Lesson Reminder - 24 hours"
    assert message.body == "Your lesson with Sofía Ruiz starts in 24 hours at 3:00 PM"


@pytest.mark.asyncio
async def test_push_client_sends_expo_message(httpx_mock):
    httpx_mock.add_response(
        method="POST", url=PUSH_URL, json={"data": {"status": "ok", "id": "ticket-1"}}
    )

    ticket = await ExpoPushClient(push_url=PUSH_URL).send(
        "ExponentPushToken[x]", "Title", "Body", {"type": "1_hour"}
    )

    assert ticket["id"] == "ticket-1"
    assert json.loads(httpx_mock.get_request().content) == {
        "to": "ExponentPushToken[x]",
        "sound": "default",
        "title": "Title",
        "body": "Body",
        "data": {"type": "1_hour"},
    }


@pytest.mark.asyncio
async def test_push_client_error_ticket_raises(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url=PUSH_URL,
        json={
            "data": {
                "status": "error",
                "message": "not a registered push notification recipient",
                "details": {"error": "DeviceNotRegistered"},
            }
        },
    )

    with pytest.raises(PushDeliveryError, match="not a registered"):
        await ExpoPushClient(push_url=PUSH_URL).send("tok", "t", "b")


@pytest.mark.asyncio
async def test_push_client_http_error_raises(httpx_mock):
    httpx_mock.add_response(method="POST", url=PUSH_URL, status_code=500, json={"errors": [{"code": "INTERNAL"}]})

    with pytest.raises(PushDeliveryError) as exc_info:
        await ExpoPushClient(push_url=PUSH_URL).send("tok", "t", "b")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_register_push_token_deactivates_then_upserts(monkeypatch):
    transaction = AsyncMock(return_value=True)
    monkeypatch.setattr(
        "pickleclub.services.notifications.registration.execute_transaction", transaction
    )

    await register_push_token("user-1", "ExponentPushToken[x]", "device-1", "ios")

    (statements,) = transaction.await_args.args
    (deactivate, deactivate_params), (upsert, upsert_params) = statements
    assert deactivate.strip().startswith("UPDATE user_push_tokens")
    assert deactivate_params == ("user-1", "device-1", "ios")
    assert "ON CONFLICT (user_id, device_id, platform)" in upsert
    assert upsert_params == ("user-1", "ExponentPushToken[x]", "device-1", "ios")


@pytest.mark.asyncio
async def test_register_push_token_propagates_database_error(monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.notifications.registration.execute_transaction",
        AsyncMock(side_effect=DatabaseError("Transaction failed", "transaction")),
    )

    with pytest.raises(DatabaseError):
        await register_push_token("user-1", "tok", "device-1", Platform.ANDROID)


class FakePermissions:
    def __init__(self, granted=True, token="ExponentPushToken[x]"):
        self.granted = granted
        self.token = token
        self.requests = 0

    async def request_permission(self):
        self.requests += 1
        return self.granted

    async def get_push_token(self):
        return self.token


@pytest.mark.asyncio
async def test_registrar_registers_once_per_session(monkeypatch):
    register = AsyncMock()
    monkeypatch.setattr("pickleclub.services.notifications.registration.register_push_token", register)
    permissions = FakePermissions()
    registrar = NotificationRegistrar(permissions)
    device = DeviceInfo(device_id="device-1", platform=Platform.IOS)

    assert await registrar.initialize("user-1", device) == "ExponentPushToken[x]"
    await registrar.initialize("user-1", device)

    register.assert_awaited_once_with("user-1", "ExponentPushToken[x]", "device-1", Platform.IOS)
    assert permissions.requests == 1

    registrar.cleanup()
    assert registrar.is_initialized is False
    assert registrar.push_token is None


@pytest.mark.asyncio
async def test_registrar_skips_simulator(monkeypatch):
    register = AsyncMock()
    monkeypatch.setattr("pickleclub.services.notifications.registration.register_push_token", register)
    permissions = FakePermissions()
    registrar = NotificationRegistrar(permissions)

    token = await registrar.initialize(
        "user-1", DeviceInfo(device_id="sim", platform=Platform.IOS, is_physical_device=False)
    )

    assert token is None
    assert registrar.is_initialized is True
    assert permissions.requests == 0
    register.assert_not_awaited()


@pytest.mark.asyncio
async def test_registrar_permission_denied(monkeypatch):
    register = AsyncMock()
    monkeypatch.setattr("pickleclub.services.notifications.registration.register_push_token", register)
    registrar = NotificationRegistrar(FakePermissions(granted=False))

    token = await registrar.initialize("user-1", DeviceInfo(device_id="d", platform=Platform.ANDROID))

    assert token is None
    assert registrar.has_permissions is False
    register.assert_not_awaited()


@pytest.mark.asyncio
async def test_registrar_swallows_registration_failure(monkeypatch):
    monkeypatch.setattr(
        "pickleclub.services.notifications.registration.register_push_token",
        AsyncMock(side_effect=DatabaseError("down", "transaction")),
    )
    registrar = NotificationRegistrar(FakePermissions())

    token = await registrar.initialize("user-1", DeviceInfo(device_id="d", platform=Platform.IOS))

    assert token is None
    assert registrar.is_initialized is True
