"""
Domain models for membership tiers, locations, user memberships and
checkout validation.
"""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MembershipTypeName(StrEnum):
    STANDARD = "standard"
    ULTIMATE = "ultimate"
    PAY_TO_PLAY = "pay_to_play"
    ADMIN = "admin"


# Admin memberships are granted by staff, never sold.
PURCHASABLE_MEMBERSHIPS = frozenset(
    {MembershipTypeName.STANDARD, MembershipTypeName.ULTIMATE, MembershipTypeName.PAY_TO_PLAY}
)

DISPLAY_NAMES: dict[str, str] = {
    "standard": "Standard",
    "ultimate": "Ultimate",
    "pay_to_play": "Pay to Play",
    "admin": "Admin",
}

DESCRIPTIONS: dict[str, str] = {
    "pay_to_play": "Perfect for occasional players",
    "standard": "Perfect for regular players",
    "ultimate": "Premium Experience with Maximum Benefits",
}

FEATURES: dict[str, list[str]] = {
    "pay_to_play": [
        "Open Play Access",
        "League Play Access",
        "Court Reservations Access",
        "Lessons Access",
        "Clinics Access",
        "No Guest Passes",
        "No Early Club Access",
    ],
    "standard": [
        "Free Open Play",
        "15% off League Play",
        "15% off Court Reservations",
        "15% off Lessons",
        "15% off Clinics",
        "Two Guest Passes per Month",
        "Early Access to the Club and Pre-Launch Events",
    ],
    "ultimate": [
        "Free Open Play",
        "Free League Play",
        "33% off Court Reservations",
        "33% off Lessons",
        "33% off Clinics",
        "Four Guest Passes per Month",
        "Early Access to the Club and Pre-Launch Events",
    ],
    "admin": ["Full Access", "Administrative Tools", "All Features Included"],
}


def display_name_for(name: str) -> str:
    return DISPLAY_NAMES.get(name) or name[:1].upper() + name[1:]


class MembershipDiscount(BaseModel):
    """Discount a tier grants on one event type."""

    event_type: str
    discount_percentage: Decimal


class MembershipType(BaseModel):
    """A purchasable (or staff-only) membership tier. Read-only."""

    id: int
    name: str
    display_name: str
    description: str = ""
    cost_mxn: Decimal
    stripe_product_id: str | None = None
    features: list[str] = Field(default_factory=list)
    discounts: list[MembershipDiscount] = Field(default_factory=list)

    @property
    def is_purchasable(self) -> bool:
        return self.name in PURCHASABLE_MEMBERSHIPS

    @property
    def activation_name(self) -> str:
        """Name the activation endpoint expects (matches the DB enumeration)."""
        return self.name.lower()


class Location(BaseModel):
    id: int
    name: str
    address: str | None = None
    open: bool = True
    timezone: str = "America/Mexico_City"
    description: str | None = None


class MembershipTypeRef(BaseModel):
    id: int
    name: str
    description: str | None = None
    cost_mxn: Decimal | None = None


class LocationRef(BaseModel):
    id: int
    name: str
    address: str | None = None


class UserMembership(BaseModel):
    """A membership row, active or historical."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    membership_type: MembershipTypeRef
    location: LocationRef | None = None
    status: str
    start_date: datetime
    end_date: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


def select_active_membership(memberships: list[UserMembership]) -> UserMembership | None:
    """The membership shown as "the" active one: newest start date among active rows."""
    active = [m for m in memberships if m.is_active]
    if not active:
        return None
    return max(active, key=lambda m: m.start_date)


class CheckoutValidation(BaseModel):
    """Result of server-side checkout validation; payment requires valid=True."""

    valid: bool
    total_amount: Decimal = Decimal("0")
    currency: str = "mxn"
    stripe_product_id: str | None = None
    errors: list[str] = Field(default_factory=list)
