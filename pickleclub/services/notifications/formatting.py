"""
Reminder message composition.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from pickleclub.config import settings
from pickleclub.models.domain.notification_domain import (
    NotificationType,
    ReminderCandidate,
    ReminderMessage,
)


def format_time_12h(moment: datetime, timezone: str | None = None) -> str:
    """Render a start time in the club's local time, e.g. "3:05 PM"."""
    local = moment.astimezone(ZoneInfo(timezone or settings.CLUB_TIMEZONE))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def format_reminder(
    candidate: ReminderCandidate,
    notification_type: NotificationType,
    timezone: str | None = None,
) -> ReminderMessage:
    time_until = notification_type.time_until
    time_str = format_time_12h(candidate.start_time, timezone)

    if candidate.is_lesson:
        court = f" on {candidate.court_name}" if candidate.court_name else ""
        return ReminderMessage(
            title=f"Lesson Reminder - {time_until}",
            body=(
                f"Your lesson with {candidate.coach_name} starts in {time_until} "
                f"at {time_str}{court}"
            ),
        )

    return ReminderMessage(
        title=f"Court Reservation - {time_until}",
        body=f"Your {candidate.court_name or 'court'} reservation starts in {time_until} at {time_str}",
    )
