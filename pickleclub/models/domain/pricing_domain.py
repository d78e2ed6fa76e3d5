from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel

NO_MEMBERSHIP = "No Membership"


class EventCategory(StrEnum):
    LESSON = "lesson"
    COURT = "court"


class PricingCalculation(BaseModel):
    """Price of a booking after the member's discount. Amounts in major units."""

    base_price: Decimal
    discount_amount: Decimal = Decimal("0")
    final_price: Decimal
    discount_percentage: Decimal = Decimal("0")
    membership_type: str | None = None

    @classmethod
    def undiscounted(cls, base_price: Decimal, membership_type: str | None) -> "PricingCalculation":
        return cls(base_price=base_price, final_price=base_price, membership_type=membership_type)
