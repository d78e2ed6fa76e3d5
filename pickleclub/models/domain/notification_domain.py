"""
Domain models for push tokens and booking reminders.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel


class Platform(StrEnum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class NotificationType(StrEnum):
    DAY_BEFORE = "24_hour"
    HOUR_BEFORE = "1_hour"

    @property
    def time_until(self) -> str:
        return "24 hours" if self is NotificationType.DAY_BEFORE else "1 hour"


class NotificationStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"


class DeviceInfo(BaseModel):
    device_id: str
    platform: Platform
    is_physical_device: bool = True


@dataclass(frozen=True)
class ReminderWindow:
    """Inclusive [start, end] band of event start times for one reminder type."""

    notification_type: NotificationType
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def reminder_windows(now: datetime) -> tuple[ReminderWindow, ReminderWindow]:
    """24-hour window [now+23h, now+24h] and 1-hour window [now+1h, now+2h]."""
    return (
        ReminderWindow(NotificationType.DAY_BEFORE, now + timedelta(hours=23), now + timedelta(hours=24)),
        ReminderWindow(NotificationType.HOUR_BEFORE, now + timedelta(hours=1), now + timedelta(hours=2)),
    )


class ReminderCandidate(BaseModel):
    """A booking (event registration) that starts inside a reminder window."""

    registration_id: str
    user_id: str
    event_id: str
    event_name: str | None = None
    start_time: datetime
    coach_first_name: str | None = None
    coach_last_name: str | None = None
    court_name: str | None = None

    @property
    def coach_name(self) -> str | None:
        if not self.coach_first_name and not self.coach_last_name:
            return None
        return " ".join(p for p in (self.coach_first_name, self.coach_last_name) if p)

    @property
    def is_lesson(self) -> bool:
        return self.coach_name is not None


class ReminderMessage(BaseModel):
    title: str
    body: str
