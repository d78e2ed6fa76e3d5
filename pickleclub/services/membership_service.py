"""
Membership service for database operations.
Lists membership tiers and locations, loads a member's memberships, and
validates a checkout before any payment is attempted.
"""

from decimal import Decimal
from typing import Any

from pickleclub.config import settings
from pickleclub.db.helpers import fetch_all, fetch_one, with_db_retry
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.membership_domain import (
    DESCRIPTIONS,
    FEATURES,
    CheckoutValidation,
    Location,
    LocationRef,
    MembershipDiscount,
    MembershipType,
    MembershipTypeName,
    MembershipTypeRef,
    UserMembership,
    display_name_for,
)

logger = get_logger(__name__)

_MEMBERSHIP_SELECT = """
SELECT
    m.id, m.user_id, m.status, m.start_date, m.end_date,
    mt.id AS type_id, mt.name AS type_name, mt.description AS type_description,
    mt.cost_mxn AS type_cost_mxn,
    l.id AS location_id, l.name AS location_name, l.address AS location_address
FROM memberships m
JOIN membership_types mt ON mt.id = m.membership_type_id
LEFT JOIN locations l ON l.id = m.location_id
"""


def _membership_from_row(row: dict[str, Any]) -> UserMembership:
    location = None
    if row.get("location_id") is not None:
        location = LocationRef(
            id=row["location_id"], name=row["location_name"], address=row["location_address"]
        )
    return UserMembership(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        status=row["status"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        membership_type=MembershipTypeRef(
            id=row["type_id"],
            name=row["type_name"],
            description=row["type_description"],
            cost_mxn=row["type_cost_mxn"],
        ),
        location=location,
    )


@with_db_retry(max_retries=2)
async def fetch_membership_types(include_admin: bool = False) -> list[MembershipType]:
    """
    Fetch membership tiers with their discounts, cheapest first.

    Args:
        include_admin: Staff-only tier is hidden from member-facing listings
    """
    types = await fetch_all(
        """
        SELECT id, name, description, cost_mxn, stripe_product_id
        FROM membership_types
        WHERE deleted_at IS NULL
        ORDER BY cost_mxn ASC
        """
    )
    discounts = await fetch_all(
        """
        SELECT med.membership_type_id, med.discount_percentage, et.name AS event_type
        FROM membership_event_discounts med
        LEFT JOIN event_types et ON et.id = med.event_type_id
        """
    )

    discounts_by_type: dict[int, list[MembershipDiscount]] = {}
    for row in discounts:
        discounts_by_type.setdefault(row["membership_type_id"], []).append(
            MembershipDiscount(
                event_type=row["event_type"] or "Unknown",
                discount_percentage=row["discount_percentage"],
            )
        )

    result = []
    for row in types:
        name = row["name"]
        if name == MembershipTypeName.ADMIN and not include_admin:
            continue
        result.append(
            MembershipType(
                id=row["id"],
                name=name,
                display_name=display_name_for(name),
                description=DESCRIPTIONS.get(name) or row["description"] or "",
                cost_mxn=row["cost_mxn"],
                stripe_product_id=row["stripe_product_id"],
                features=FEATURES.get(name, ["Access to facilities"]),
                discounts=discounts_by_type.get(row["id"], []),
            )
        )

    logger.info("Membership types fetched", count=len(result), include_admin=include_admin)
    return result


@with_db_retry(max_retries=2)
async def fetch_locations() -> list[Location]:
    rows = await fetch_all(
        """
        SELECT id, name, address, open, timezone, description
        FROM locations
        WHERE show_location = true AND deleted_at IS NULL
        ORDER BY name
        """
    )
    return [Location(**row) for row in rows]


@with_db_retry(max_retries=2)
async def fetch_user_active_memberships(user_id: str) -> list[UserMembership]:
    rows = await fetch_all(
        _MEMBERSHIP_SELECT
        + """
        WHERE m.user_id = %s AND m.status = 'active' AND m.deleted_at IS NULL
        ORDER BY m.start_date DESC
        """,
        (user_id,),
    )
    return [_membership_from_row(row) for row in rows]


@with_db_retry(max_retries=2)
async def fetch_user_membership_history(user_id: str) -> list[UserMembership]:
    rows = await fetch_all(
        _MEMBERSHIP_SELECT
        + """
        WHERE m.user_id = %s AND m.status <> 'active' AND m.deleted_at IS NULL
        ORDER BY m.start_date DESC
        """,
        (user_id,),
    )
    return [_membership_from_row(row) for row in rows]


async def validate_checkout(
    membership_type_id: int, location_id: int, user_id: str
) -> CheckoutValidation:
    """
    Validate a membership purchase before payment.

    Checks that the tier exists and is purchasable, that the location is
    visible, and that the user has no active membership there already.
    Any unexpected failure yields an invalid result rather than raising.
    """
    try:
        errors: list[str] = []

        membership_type = await fetch_one(
            """
            SELECT id, name, cost_mxn, stripe_product_id
            FROM membership_types
            WHERE id = %s AND deleted_at IS NULL
            """,
            (membership_type_id,),
        )
        if not membership_type or membership_type["name"] == MembershipTypeName.ADMIN:
            errors.append("Invalid membership type selected")

        location = await fetch_one(
            """
            SELECT id FROM locations
            WHERE id = %s AND show_location = true AND deleted_at IS NULL
            """,
            (location_id,),
        )
        if not location:
            errors.append("Invalid location selected")

        existing = await fetch_one(
            """
            SELECT id FROM memberships
            WHERE user_id = %s AND location_id = %s AND status = 'active'
              AND deleted_at IS NULL
            LIMIT 1
            """,
            (user_id, location_id),
        )
        if existing:
            errors.append("You already have an active membership at this location")

        validation = CheckoutValidation(
            valid=not errors,
            total_amount=(membership_type or {}).get("cost_mxn") or Decimal("0"),
            currency=settings.PAYMENTS_CURRENCY,
            stripe_product_id=(membership_type or {}).get("stripe_product_id"),
            errors=errors,
        )

    except Exception as e:
        logger.error(
            "Error validating checkout",
            user_id=user_id,
            membership_type_id=membership_type_id,
            error=str(e),
        )
        return CheckoutValidation(valid=False, errors=["An error occurred during validation"])

    logger.info(
        "Checkout validated",
        user_id=user_id,
        membership_type_id=membership_type_id,
        location_id=location_id,
        valid=validation.valid,
    )
    return validation
