from pydantic import BaseModel, Field


class CheckoutValidationRequest(BaseModel):
    """Request body for POST /memberships/checkout/validate."""

    membership_type_id: int = Field(..., gt=0)
    location_id: int | None = Field(None, gt=0, description="Defaults to the club's main location")
