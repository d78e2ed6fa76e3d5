from pickleclub.services.notifications.formatting import format_reminder, format_time_12h
from pickleclub.services.notifications.push_client import ExpoPushClient, PushDeliveryError
from pickleclub.services.notifications.registration import (
    NotificationRegistrar,
    PushPermissionProvider,
    register_push_token,
)

__all__ = [
    "ExpoPushClient",
    "NotificationRegistrar",
    "PushDeliveryError",
    "PushPermissionProvider",
    "format_reminder",
    "format_time_12h",
    "register_push_token",
]
