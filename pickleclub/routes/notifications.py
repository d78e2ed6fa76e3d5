"""
notifications.py
----------------
Purpose:
    Push-token registration for booking reminders.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from pickleclub.auth.verify import current_user_id
from pickleclub.db.helpers import DatabaseError
from pickleclub.models.api.notification_request import (
    PushTokenRegistrationRequest,
    PushTokenRegistrationResponse,
)
from pickleclub.services.notifications.registration import register_push_token

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/push-tokens", response_model=PushTokenRegistrationResponse)
async def register_token(
    request: PushTokenRegistrationRequest, user_id: str = Depends(current_user_id)
):
    try:
        await register_push_token(user_id, request.push_token, request.device_id, request.platform)
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not register push token",
        ) from e
    return PushTokenRegistrationResponse(success=True, message="Push token registered")
