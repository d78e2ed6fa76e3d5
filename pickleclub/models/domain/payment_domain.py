"""
Domain models for the payments backend: saved cards, payment history,
payment intents, and the typed result used by fail-soft read paths.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (pesos) to integer minor units (centavos)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentMethod(BaseModel):
    """A saved card as reported by the payments backend."""

    id: str
    brand: str = "card"
    last4: str = ""
    exp_month: int | None = None
    exp_year: int | None = None
    is_default: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PaymentMethod":
        card = data.get("card") or {}
        return cls(
            id=data["id"],
            brand=card.get("brand", "card"),
            last4=card.get("last4", ""),
            exp_month=card.get("exp_month"),
            exp_year=card.get("exp_year"),
            is_default=bool(data.get("is_default", False)),
        )

    @property
    def label(self) -> str:
        return f"{self.brand.title()} •••• {self.last4}"


class InvoiceRef(BaseModel):
    id: str
    number: str | None = None
    pdf: str | None = None


class PaymentRecord(BaseModel):
    """A past charge. Amount is in minor units."""

    model_config = ConfigDict(extra="ignore")

    id: str
    amount: int
    currency: str
    status: str
    description: str | None = None
    created: int
    receipt_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    invoice: InvoiceRef | None = None
    card_brand: str | None = None
    card_last4: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PaymentRecord":
        card = (data.get("payment_method") or {}).get("card") or {}
        return cls(
            **{k: v for k, v in data.items() if k != "payment_method"},
            card_brand=card.get("brand"),
            card_last4=card.get("last4"),
        )


class PaymentIntent(BaseModel):
    client_secret: str | None
    payment_intent_id: str | None
    amount: int | None = None
    currency: str | None = None
    status: str | None = None


class PaymentConfirmation(BaseModel):
    success: bool
    payment: dict[str, Any] | None = None


class FetchError(StrEnum):
    """Why a fail-soft read returned no data."""

    AUTH_MISSING = "auth_missing"
    NETWORK = "network"
    HTML_RESPONSE = "html_response"
    BACKEND_ERROR = "backend_error"
    INVALID_JSON = "invalid_json"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Value of a read, or the reason it is missing. Callers decide degradation."""

    value: T
    error: FetchError | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
