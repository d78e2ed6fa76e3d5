from pydantic import BaseModel, Field

from pickleclub.models.domain.notification_domain import Platform


class PushTokenRegistrationRequest(BaseModel):
    """Request body for POST /notifications/push-tokens."""

    push_token: str = Field(..., min_length=1, max_length=255)
    device_id: str = Field(..., min_length=1, max_length=255)
    platform: Platform


class PushTokenRegistrationResponse(BaseModel):
    success: bool
    message: str
