from pydantic import BaseModel

from pickleclub.models.domain.pricing_domain import PricingCalculation


class PricingResponse(BaseModel):
    """Calculated price plus display strings ("$1,234.50", "20%")."""

    pricing: PricingCalculation
    display: dict[str, str]
