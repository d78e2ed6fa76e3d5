"""
Profile service for the users table.
Loads a member's profile with derived membership data, creates it at
sign-up, and applies validated updates.
"""

from typing import Any

from pickleclub.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.membership_domain import select_active_membership
from pickleclub.models.domain.user_domain import EDITABLE_PROFILE_FIELDS, UserProfile
from pickleclub.services.membership_service import (
    fetch_user_active_memberships,
    fetch_user_membership_history,
)
from pickleclub.utils.validation import (
    sanitize_phone,
    sanitize_string,
    validate_name,
    validate_phone,
)

logger = get_logger(__name__)

_PROFILE_COLUMNS = """
    id, email, first_name, last_name, phone, gender, role,
    email_notifications, sms_notifications, whatsapp_notifications,
    has_signed_waiver, created_at, updated_at
"""


class ProfileServiceError(Exception):
    """Raised when a profile write is rejected or fails."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


@with_db_retry(max_retries=3, base_delay=0.1)
async def _fetch_profile_row(user_id: str) -> dict[str, Any] | None:
    return await fetch_one(f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = %s", (user_id,))


async def get_user_profile(user_id: str, email: str | None = None) -> UserProfile | None:
    """
    Fetch a member profile with active membership and membership history.

    Args:
        user_id: Auth user id (UUID string)
        email: Email from the auth session, preferred over the users row

    Returns:
        UserProfile, or None when the row is missing or the read failed
    """
    try:
        row = await _fetch_profile_row(user_id)
    except DatabaseError as e:
        logger.error("Database error retrieving user profile", user_id=user_id, error=str(e))
        return None

    if not row:
        logger.info("User profile not found", user_id=user_id)
        return None

    profile = UserProfile(**{**row, "id": str(row["id"]), "email": email or row.get("email")})

    try:
        active = await fetch_user_active_memberships(user_id)
        profile.active_membership = select_active_membership(active)
        profile.membership_history = await fetch_user_membership_history(user_id)
    except DatabaseError as e:
        # Profile is still usable without membership data
        logger.warning("Could not load membership data", user_id=user_id, error=str(e))

    logger.info(
        "User profile retrieved",
        user_id=user_id,
        has_active_membership=profile.active_membership is not None,
    )
    return profile


async def upsert_user_profile(
    user_id: str,
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
) -> None:
    """Create the users row at sign-up, or refresh its basics if it exists."""
    await execute_query(
        """
        INSERT INTO users (id, email, first_name, last_name, phone, created_at, updated_at)
        VALUES (%s, %s, %s, %s, %s, NOW(), NOW())
        ON CONFLICT (id) DO UPDATE SET
            email = EXCLUDED.email,
            first_name = COALESCE(EXCLUDED.first_name, users.first_name),
            last_name = COALESCE(EXCLUDED.last_name, users.last_name),
            phone = COALESCE(EXCLUDED.phone, users.phone),
            updated_at = NOW()
        """,
        (user_id, email, first_name, last_name, phone),
    )
    logger.info("User profile upserted", user_id=user_id)


def clean_profile_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """
    Keep editable fields only, sanitize strings, and validate names/phone.

    Raises:
        ProfileServiceError: on a non-editable field or invalid value
    """
    unknown = set(updates) - EDITABLE_PROFILE_FIELDS
    if unknown:
        raise ProfileServiceError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    cleaned: dict[str, Any] = {}
    for field, value in updates.items():
        if isinstance(value, str):
            value = sanitize_phone(value) if field == "phone" else sanitize_string(value)
        if field in ("first_name", "last_name") and not validate_name(value):
            raise ProfileServiceError(f"Invalid {field.replace('_', ' ')}", field=field)
        if field == "phone" and not validate_phone(value):
            raise ProfileServiceError("Invalid phone number", field=field)
        cleaned[field] = value
    return cleaned


async def update_user_profile(user_id: str, updates: dict[str, Any]) -> UserProfile:
    """
    Apply profile updates and return the refreshed profile.

    Raises:
        ProfileServiceError: invalid input, or the user row does not exist
    """
    cleaned = clean_profile_updates(updates)
    if not cleaned:
        raise ProfileServiceError("No profile fields to update")

    # Column names come from the allowlist above, never from input
    assignments = ", ".join(f"{field} = %s" for field in cleaned)
    affected = await execute_query(
        f"UPDATE users SET {assignments}, updated_at = NOW() WHERE id = %s",
        (*cleaned.values(), user_id),
    )
    if not affected:
        raise ProfileServiceError("User profile not found")

    logger.info("User profile updated", user_id=user_id, fields=sorted(cleaned))

    profile = await get_user_profile(user_id)
    if profile is None:
        raise ProfileServiceError("Profile could not be reloaded after update")
    return profile
