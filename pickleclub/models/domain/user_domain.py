from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pickleclub.models.domain.membership_domain import UserMembership

# Fields that must be filled before a membership can be purchased
CHECKOUT_REQUIRED_FIELDS = ("first_name", "last_name", "phone")

# Fields a member may change through profile updates
EDITABLE_PROFILE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "phone",
        "gender",
        "email_notifications",
        "sms_notifications",
        "whatsapp_notifications",
        "has_signed_waiver",
    }
)


class UserProfile(BaseModel):
    """Member profile (users row + auth email + derived membership data)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    gender: str | None = None
    role: str | None = None

    email_notifications: bool = True
    sms_notifications: bool = False
    whatsapp_notifications: bool = False
    has_signed_waiver: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Derived, populated by the profile service
    active_membership: UserMembership | None = None
    membership_history: list[UserMembership] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def missing_checkout_fields(self) -> list[str]:
        return [name for name in CHECKOUT_REQUIRED_FIELDS if not getattr(self, name)]

    @property
    def is_checkout_ready(self) -> bool:
        return not self.missing_checkout_fields()
