from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /me. Only fields that are sent are updated."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    phone: str | None = Field(None, max_length=20)
    gender: str | None = None
    email_notifications: bool | None = None
    sms_notifications: bool | None = None
    whatsapp_notifications: bool | None = None
    has_signed_waiver: bool | None = None
