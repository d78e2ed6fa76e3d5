"""
memberships.py
--------------
Purpose:
    Membership tier listing, the member's memberships, and pre-payment
    checkout validation.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from pickleclub.auth.verify import current_user_id
from pickleclub.config import settings
from pickleclub.db.helpers import DatabaseError
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.api.membership_request import CheckoutValidationRequest
from pickleclub.models.api.membership_response import (
    LocationsResponse,
    MembershipTypesResponse,
    MyMembershipsResponse,
)
from pickleclub.models.domain.membership_domain import (
    CheckoutValidation,
    select_active_membership,
)
from pickleclub.services import membership_service

router = APIRouter(prefix="/memberships", tags=["memberships"])
logger = get_logger(__name__)


@router.get("/types", response_model=MembershipTypesResponse)
async def list_membership_types():
    """Purchasable tiers ordered by monthly cost (staff-only tiers excluded)."""
    try:
        types = await membership_service.fetch_membership_types()
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Membership types are temporarily unavailable",
        ) from e
    return MembershipTypesResponse(membership_types=types)


@router.get("/locations", response_model=LocationsResponse)
async def list_locations():
    try:
        locations = await membership_service.fetch_locations()
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Locations are temporarily unavailable",
        ) from e
    return LocationsResponse(locations=locations)


@router.get("/me", response_model=MyMembershipsResponse)
async def my_memberships(user_id: str = Depends(current_user_id)):
    try:
        active = await membership_service.fetch_user_active_memberships(user_id)
        history = await membership_service.fetch_user_membership_history(user_id)
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Memberships are temporarily unavailable",
        ) from e
    return MyMembershipsResponse(
        active_membership=select_active_membership(active), membership_history=history
    )


@router.post("/checkout/validate", response_model=CheckoutValidation)
async def validate_checkout(
    request: CheckoutValidationRequest, user_id: str = Depends(current_user_id)
):
    """Business-rule check run before any payment is attempted. Never charges."""
    location_id = request.location_id or settings.DEFAULT_LOCATION_ID
    validation = await membership_service.validate_checkout(
        request.membership_type_id, location_id, user_id
    )
    logger.info(
        "Checkout validated",
        user_id=user_id,
        membership_type_id=request.membership_type_id,
        location_id=location_id,
        valid=validation.valid,
    )
    return validation
