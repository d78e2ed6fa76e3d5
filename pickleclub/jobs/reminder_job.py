"""
Booking reminder job.

Runs hourly. Finds bookings starting in the 24-hour window
[now+23h, now+24h] and the 1-hour window [now+1h, now+2h] and sends at
most one push reminder per (booking, window). notification_logs is the
idempotency log: a booking with a "sent" row is never pushed again,
while a failed send is simply retried on the next run.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.notification_domain import (
    NotificationStatus,
    NotificationType,
    ReminderCandidate,
    reminder_windows,
)
from pickleclub.repositories.reminder_repository import ReminderRepository
from pickleclub.services.notifications.formatting import format_reminder
from pickleclub.services.notifications.push_client import ExpoPushClient, PushDeliveryError

logger = get_logger(__name__)


class ReminderJobMetrics:
    """Counters for one run."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.processed_24h = 0
        self.processed_1h = 0
        self.sent = 0
        self.skipped = 0
        self.failed = 0
        self.total_duration_seconds = 0.0

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "booking_reminders",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "processed_24h": self.processed_24h,
            "processed_1h": self.processed_1h,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class ReminderJob:
    """Sends 24-hour and 1-hour booking reminders."""

    def __init__(
        self,
        repository: type[ReminderRepository] | ReminderRepository = ReminderRepository,
        push_client: ExpoPushClient | None = None,
        timezone: str | None = None,
    ):
        self.repository = repository
        self._push_client = push_client
        self.timezone = timezone or settings.CLUB_TIMEZONE
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.job_metrics = ReminderJobMetrics()

    @property
    def push_client(self) -> ExpoPushClient:
        if self._push_client is None:
            self._push_client = ExpoPushClient()
        return self._push_client

    async def run_once(self, now: datetime | None = None) -> dict:
        """
        One pass over both reminder windows.

        Returns:
            dict with success, processed_24h, processed_1h, sent, skipped, failed.
            success is False only when the candidate queries fail.
        """
        if self.is_running:
            logger.warning("Reminder job already running, skipping this iteration")
            return {"success": True, "run_skipped": True, "reason": "already_running"}

        self.is_running = True
        self.job_metrics.reset()
        now = now or datetime.now(UTC)

        try:
            day_window, hour_window = reminder_windows(now)
            try:
                day_candidates = await self.repository.fetch_candidates(day_window)
                hour_candidates = await self.repository.fetch_candidates(hour_window)
            except Exception as e:
                logger.error("Reminder candidate query failed", error=str(e))
                self.job_metrics.finalize()
                return {"success": False, "error": str(e), **self.job_metrics.to_dict()}

            self.job_metrics.processed_24h = len(day_candidates)
            self.job_metrics.processed_1h = len(hour_candidates)
            logger.info(
                "Reminder candidates found",
                candidates_24h=len(day_candidates),
                candidates_1h=len(hour_candidates),
            )

            for candidate in day_candidates:
                await self._process_candidate(candidate, NotificationType.DAY_BEFORE)
            for candidate in hour_candidates:
                await self._process_candidate(candidate, NotificationType.HOUR_BEFORE)

            self.job_metrics.finalize()
            self.last_run_time = datetime.now(UTC)
            metrics = {"success": True, **self.job_metrics.to_dict()}
            logger.info("Reminder job completed", **metrics)
            return metrics
        finally:
            self.is_running = False

    async def _process_candidate(
        self, candidate: ReminderCandidate, notification_type: NotificationType
    ) -> None:
        """Send one reminder. Never raises; every outcome lands in the metrics."""
        push_token: str | None = None
        try:
            if await self.repository.was_notification_sent(
                candidate.registration_id, notification_type
            ):
                logger.debug(
                    "Reminder already sent",
                    registration_id=candidate.registration_id,
                    notification_type=notification_type.value,
                )
                self.job_metrics.skipped += 1
                return

            push_token = await self.repository.get_active_push_token(candidate.user_id)
            if not push_token:
                logger.info("No push token for user", user_id=candidate.user_id)
                self.job_metrics.skipped += 1
                return

            message = format_reminder(candidate, notification_type, self.timezone)
            await self.push_client.send(
                push_token,
                message.title,
                message.body,
                {
                    "eventId": candidate.event_id,
                    "eventRegistrationId": candidate.registration_id,
                    "type": notification_type.value,
                },
            )
        except Exception as e:
            self.job_metrics.failed += 1
            level = logger.warning if isinstance(e, PushDeliveryError) else logger.error
            level(
                "Reminder send failed",
                registration_id=candidate.registration_id,
                user_id=candidate.user_id,
                notification_type=notification_type.value,
                error=str(e),
            )
            if push_token:
                await self.repository.log_notification(
                    candidate.registration_id,
                    notification_type,
                    push_token,
                    NotificationStatus.FAILED,
                    str(e),
                )
            return

        await self.repository.log_notification(
            candidate.registration_id, notification_type, push_token, NotificationStatus.SENT
        )
        self.job_metrics.sent += 1
        logger.info(
            "Reminder sent",
            registration_id=candidate.registration_id,
            user_id=candidate.user_id,
            notification_type=notification_type.value,
        )

    def get_job_status(self) -> dict:
        return {
            "job_name": "booking_reminders",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_minutes": settings.REMINDER_JOB_INTERVAL_MINUTES,
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }

    def health_check(self) -> dict:
        """Unhealthy when the job has not completed a run in twice its interval."""
        now = datetime.now(UTC)
        overdue_threshold = timedelta(minutes=settings.REMINDER_JOB_INTERVAL_MINUTES * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold
        return {
            "healthy": not is_overdue,
            "service": "reminder_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
        }


# Singleton instance for application use
reminder_job = ReminderJob()


async def run_reminder_job() -> dict:
    """Run a single iteration of the reminder job."""
    return await reminder_job.run_once()


async def start_reminder_scheduler():
    """Run the reminder job forever at the configured interval."""
    interval_minutes = settings.REMINDER_JOB_INTERVAL_MINUTES
    logger.info("Starting reminder job scheduler", interval_minutes=interval_minutes)

    while True:
        try:
            metrics = await run_reminder_job()
            if not metrics.get("run_skipped", False):
                logger.info("Reminder job cycle completed", success=metrics.get("success"))
            await asyncio.sleep(interval_minutes * 60)
        except Exception as e:
            logger.error(
                "Error in reminder job scheduler", error=str(e), error_type=type(e).__name__
            )
            # Back off before retrying to avoid tight error loops
            await asyncio.sleep(60)
