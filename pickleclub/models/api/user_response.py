from pydantic import BaseModel, Field

from pickleclub.models.domain.user_domain import UserProfile


class AuthMeta(BaseModel):
    """Auth metadata extracted from JWT claims."""

    user_id: str
    email: str | None = None
    role: str | None = "authenticated"
    aud: str | None = None
    iat: int | None = None
    exp: int | None = None


class UserProfileResponse(BaseModel):
    """API response for /me endpoint."""

    profile: UserProfile = Field(..., description="Member profile with membership data")
    auth: AuthMeta = Field(..., description="JWT authentication metadata")
    checkout_ready: bool = Field(..., description="Profile has the fields checkout requires")
    missing_fields: list[str] = Field(default_factory=list)
