"""
Pricing service for lessons and court reservations.
Applies the member's discount (membership_event_discounts table) to a
base hourly rate. Read-only; every lookup failure falls back to the
undiscounted price.
"""

from decimal import Decimal
from typing import Any

from pickleclub.db.helpers import DatabaseError, fetch_one
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.pricing_domain import (
    NO_MEMBERSHIP,
    EventCategory,
    PricingCalculation,
)

logger = get_logger(__name__)

# ILIKE patterns used to find the event type row for each category
EVENT_TYPE_PATTERNS: dict[EventCategory, tuple[str, ...]] = {
    EventCategory.LESSON: ("%lesson%",),
    EventCategory.COURT: ("%court%", "%reservation%"),
}


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


async def get_user_membership(user_id: str) -> dict[str, Any] | None:
    """Most recent active membership with its type name, or None."""
    query = """
    SELECT m.id, m.membership_type_id, m.status, m.start_date, m.end_date,
           mt.name AS membership_type_name, mt.cost_mxn
    FROM memberships m
    JOIN membership_types mt ON mt.id = m.membership_type_id
    WHERE m.user_id = %s AND m.status = 'active' AND m.deleted_at IS NULL
    ORDER BY m.start_date DESC
    LIMIT 1
    """
    try:
        return await fetch_one(query, (user_id,))
    except DatabaseError as e:
        logger.error("Error fetching membership", user_id=user_id, error=str(e))
        return None


async def resolve_event_type_id(category: EventCategory) -> int | None:
    """Event type row id for a pricing category."""
    patterns = EVENT_TYPE_PATTERNS[category]
    conditions = " OR ".join("name ILIKE %s" for _ in patterns)
    query = f"SELECT id FROM event_types WHERE {conditions} ORDER BY id LIMIT 1"
    try:
        row = await fetch_one(query, patterns)
    except DatabaseError as e:
        logger.error("Error resolving event type", category=category.value, error=str(e))
        return None
    return row["id"] if row else None


async def get_membership_discount(membership_type_id: int, event_type_id: int) -> Decimal | None:
    """Discount percentage for (membership type, event type); None when no entry exists."""
    query = """
    SELECT discount_percentage
    FROM membership_event_discounts
    WHERE membership_type_id = %s AND event_type_id = %s
    """
    try:
        row = await fetch_one(query, (membership_type_id, event_type_id))
    except DatabaseError as e:
        logger.error(
            "Error fetching membership discount",
            membership_type_id=membership_type_id,
            event_type_id=event_type_id,
            error=str(e),
        )
        return None
    if not row or row["discount_percentage"] is None:
        return None
    return _as_decimal(row["discount_percentage"])


def apply_discount(base_price: Decimal, discount_percentage: Decimal, membership_type: str | None):
    """finalPrice = max(0, base - base*pct/100)."""
    discount_amount = base_price * discount_percentage / Decimal(100)
    return PricingCalculation(
        base_price=base_price,
        discount_amount=discount_amount,
        final_price=max(Decimal(0), base_price - discount_amount),
        discount_percentage=discount_percentage,
        membership_type=membership_type,
    )


async def calculate_price(
    user_id: str,
    hourly_rate: Decimal | int | float,
    duration_hours: Decimal | int | float,
    category: EventCategory,
) -> PricingCalculation:
    """
    Price a booking for a user.

    Args:
        user_id: Member making the booking
        hourly_rate: Coach or court rate per hour (major units)
        duration_hours: Booking length
        category: Which discount row applies

    Returns:
        PricingCalculation; undiscounted whenever no discount can be resolved
    """
    base_price = _as_decimal(hourly_rate) * _as_decimal(duration_hours)

    membership = await get_user_membership(user_id)
    if not membership:
        return PricingCalculation.undiscounted(base_price, NO_MEMBERSHIP)

    membership_name = membership["membership_type_name"]

    event_type_id = await resolve_event_type_id(category)
    if event_type_id is None:
        logger.warning("Event type not found, using base price", category=category.value)
        return PricingCalculation.undiscounted(base_price, membership_name)

    discount = await get_membership_discount(membership["membership_type_id"], event_type_id)
    if discount is None:
        logger.warning(
            "No discount entry, using base price",
            membership_type=membership_name,
            category=category.value,
        )
        return PricingCalculation.undiscounted(base_price, membership_name)

    return apply_discount(base_price, discount, membership_name)


async def calculate_lesson_price(user_id: str, coach_rate, duration_hours=1) -> PricingCalculation:
    return await calculate_price(user_id, coach_rate, duration_hours, EventCategory.LESSON)


async def calculate_court_price(user_id: str, court_rate, duration_hours=1) -> PricingCalculation:
    return await calculate_price(user_id, court_rate, duration_hours, EventCategory.COURT)


async def calculate_single_hour_pricing(
    user_id: str, hourly_rate, category: EventCategory
) -> PricingCalculation:
    """Price of one extra hour, used by the "add hour" controls."""
    return await calculate_price(user_id, hourly_rate, 1, category)


def format_price(amount: Decimal | int | float) -> str:
    """Major-unit amount as "$1,234.50"."""
    return f"${_as_decimal(amount):,.2f}"


def format_pricing_display(pricing: PricingCalculation) -> dict[str, str]:
    return {
        "base_price": format_price(pricing.base_price),
        "discount_amount": format_price(pricing.discount_amount),
        "final_price": format_price(pricing.final_price),
        "discount_percentage": f"{pricing.discount_percentage.normalize():f}%",
        "membership_type": pricing.membership_type or NO_MEMBERSHIP,
    }
