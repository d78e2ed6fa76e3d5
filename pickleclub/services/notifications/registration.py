"""
Push-token registration.

A device registers its Expo push token after sign-in. For a given
(user, device, platform) there is at most one active row: older tokens
are deactivated and the new one upserted in the same transaction.
"""

from typing import Protocol

from pickleclub.db.helpers import DatabaseError, execute_transaction
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.notification_domain import DeviceInfo, Platform

logger = get_logger(__name__)


class PushPermissionProvider(Protocol):
    """Device seam: OS notification permission and the Expo push token."""

    async def request_permission(self) -> bool: ...

    async def get_push_token(self) -> str | None: ...


async def register_push_token(
    user_id: str, token: str, device_id: str, platform: Platform | str
) -> None:
    """
    Store a push token as the active one for this device.

    Raises:
        DatabaseError: if the transaction fails
    """
    platform = Platform(platform)
    try:
        await execute_transaction(
            [
                (
                    """
                    UPDATE user_push_tokens
                    SET active = false, updated_at = NOW()
                    WHERE user_id = %s AND device_id = %s AND platform = %s
                    """,
                    (user_id, device_id, platform.value),
                ),
                (
                    """
                    INSERT INTO user_push_tokens
                        (user_id, push_token, device_id, platform, active, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, true, NOW(), NOW())
                    ON CONFLICT (user_id, device_id, platform) DO UPDATE SET
                        push_token = EXCLUDED.push_token,
                        active = true,
                        updated_at = NOW()
                    """,
                    (user_id, token, device_id, platform.value),
                ),
            ]
        )
    except DatabaseError as e:
        logger.error(
            "Error registering push token",
            user_id=user_id,
            device_id=device_id,
            platform=platform.value,
            error=str(e),
        )
        raise

    logger.info(
        "Push token registered", user_id=user_id, device_id=device_id, platform=platform.value
    )


class NotificationRegistrar:
    """Per-session notification setup for one device."""

    def __init__(self, permissions: PushPermissionProvider):
        self.permissions = permissions
        self.is_initialized = False
        self.has_permissions = False
        self.push_token: str | None = None

    async def initialize(self, user_id: str | None, device: DeviceInfo) -> str | None:
        """
        Request permission, fetch the push token and register it.

        Runs once per session. Simulators are skipped. Failures are logged
        and leave the registrar initialized without a token.
        """
        if self.is_initialized:
            return self.push_token

        try:
            if not device.is_physical_device:
                logger.info("Simulator detected, skipping push notifications")
                return None

            self.has_permissions = await self.permissions.request_permission()
            if not self.has_permissions:
                logger.info("Notification permissions denied", user_id=user_id)
                return None

            token = await self.permissions.get_push_token()
            if token and user_id:
                await register_push_token(user_id, token, device.device_id, device.platform)
            self.push_token = token
            logger.info("Notifications initialized", user_id=user_id, has_token=bool(token))
            return token
        except Exception as e:
            logger.error("Error initializing notifications", user_id=user_id, error=str(e))
            return None
        finally:
            self.is_initialized = True

    def cleanup(self) -> None:
        """Forget session state (on sign-out) so the next sign-in registers again."""
        self.is_initialized = False
        self.has_permissions = False
        self.push_token = None
