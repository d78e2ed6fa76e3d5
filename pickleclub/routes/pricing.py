"""
pricing.py
----------
Purpose:
    Member-specific lesson and court prices.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from pickleclub.auth.verify import current_user_id
from pickleclub.models.api.pricing_response import PricingResponse
from pickleclub.services import pricing_service

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/lessons", response_model=PricingResponse)
async def lesson_price(
    rate: Decimal = Query(..., ge=0, description="Coach rate per hour"),
    duration: Decimal = Query(Decimal(1), ge=0, description="Duration in hours"),
    user_id: str = Depends(current_user_id),
):
    pricing = await pricing_service.calculate_lesson_price(user_id, rate, duration)
    return PricingResponse(pricing=pricing, display=pricing_service.format_pricing_display(pricing))


@router.get("/courts", response_model=PricingResponse)
async def court_price(
    rate: Decimal = Query(..., ge=0, description="Court rate per hour"),
    duration: Decimal = Query(Decimal(1), ge=0, description="Duration in hours"),
    user_id: str = Depends(current_user_id),
):
    pricing = await pricing_service.calculate_court_price(user_id, rate, duration)
    return PricingResponse(pricing=pricing, display=pricing_service.format_pricing_display(pricing))
