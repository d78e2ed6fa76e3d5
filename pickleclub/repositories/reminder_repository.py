"""
Persistence for the booking reminder job.

Reads bookings across all members (service-role connection), the
idempotency log in notification_logs, and active push tokens.
"""

from pickleclub.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.notification_domain import (
    NotificationStatus,
    NotificationType,
    ReminderCandidate,
    ReminderWindow,
)

logger = get_logger(__name__)


class ReminderRepository:
    """SQL backing the reminder job. All methods are classmethods over the shared pool."""

    CANDIDATE_QUERY = """
        SELECT
            er.id AS registration_id,
            er.user_id,
            e.id AS event_id,
            e.name AS event_name,
            e.start_time,
            coach.first_name AS coach_first_name,
            coach.last_name AS coach_last_name,
            (
                SELECT c.name
                FROM event_courts ec
                JOIN courts c ON c.id = ec.court_id
                WHERE ec.event_id = e.id
                ORDER BY c.name
                LIMIT 1
            ) AS court_name
        FROM event_registrations er
        JOIN events e ON e.id = er.event_id
        JOIN users u ON u.id = er.user_id
        LEFT JOIN users coach ON coach.id = e.coach_id
        WHERE e.start_time >= %s
          AND e.start_time <= %s
          AND er.deleted_at IS NULL
        ORDER BY e.start_time
    """

    @classmethod
    async def fetch_candidates(cls, window: ReminderWindow) -> list[ReminderCandidate]:
        """
        Bookings whose event starts inside the window (both ends inclusive).

        Raises:
            DatabaseError: the caller treats this as a failed run
        """
        rows = await fetch_all(cls.CANDIDATE_QUERY, (window.start, window.end))
        return [
            ReminderCandidate(
                registration_id=str(row["registration_id"]),
                user_id=str(row["user_id"]),
                event_id=str(row["event_id"]),
                event_name=row["event_name"],
                start_time=row["start_time"],
                coach_first_name=row["coach_first_name"],
                coach_last_name=row["coach_last_name"],
                court_name=row["court_name"],
            )
            for row in rows
        ]

    @classmethod
    async def was_notification_sent(
        cls, registration_id: str, notification_type: NotificationType
    ) -> bool:
        row = await fetch_one(
            """
            SELECT id FROM notification_logs
            WHERE event_registration_id = %s
              AND notification_type = %s
              AND status = 'sent'
            """,
            (registration_id, notification_type.value),
        )
        return row is not None

    @classmethod
    async def get_active_push_token(cls, user_id: str) -> str | None:
        # Most recently registered device wins
        row = await fetch_one(
            """
            SELECT push_token FROM user_push_tokens
            WHERE user_id = %s AND active = true
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            (user_id,),
        )
        return row["push_token"] if row else None

    @classmethod
    async def log_notification(
        cls,
        registration_id: str,
        notification_type: NotificationType,
        push_token: str,
        status: NotificationStatus,
        error_message: str | None = None,
    ) -> bool:
        """
        Record a send attempt. Best-effort: failures are logged, never raised.

        A failed row is overwritten by a later success; a sent row is never
        replaced.
        """
        try:
            await execute_query(
                """
                INSERT INTO notification_logs
                    (event_registration_id, notification_type, push_token, status,
                     error_message, sent_at)
                VALUES (%s, %s, %s, %s, %s, NOW())
                ON CONFLICT (event_registration_id, notification_type) DO UPDATE SET
                    push_token = EXCLUDED.push_token,
                    status = EXCLUDED.status,
                    error_message = EXCLUDED.error_message,
                    sent_at = EXCLUDED.sent_at
                WHERE notification_logs.status <> 'sent'
                """,
                (
                    registration_id,
                    notification_type.value,
                    push_token,
                    status.value,
                    error_message,
                ),
            )
            return True
        except DatabaseError as e:
            logger.error(
                "Error logging notification",
                registration_id=registration_id,
                notification_type=notification_type.value,
                status=status.value,
                error=str(e),
            )
            return False
