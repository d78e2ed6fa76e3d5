"""
Hosted card collection seam.

The processor's card sheet is a client UI; the gateway only needs to
hand it a setup-intent secret and learn how it ended.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol


class CardCollectionStatus(StrEnum):
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(frozen=True)
class CardCollectionResult:
    status: CardCollectionStatus
    error_message: str | None = None

    @classmethod
    def completed(cls) -> "CardCollectionResult":
        return cls(CardCollectionStatus.COMPLETED)

    @classmethod
    def canceled(cls) -> "CardCollectionResult":
        return cls(CardCollectionStatus.CANCELED)

    @classmethod
    def failed(cls, message: str) -> "CardCollectionResult":
        return cls(CardCollectionStatus.FAILED, message)


@dataclass(frozen=True)
class CardSheetConfig:
    client_secret: str
    merchant_display_name: str
    return_url: str
    email: str | None = None
    allows_delayed_payment_methods: bool = False


class CardCollector(Protocol):
    """Presents the processor's hosted card sheet for a setup intent."""

    async def collect(self, config: CardSheetConfig) -> CardCollectionResult: ...
