from pydantic import BaseModel, Field

from pickleclub.models.domain.membership_domain import Location, MembershipType, UserMembership


class MembershipTypesResponse(BaseModel):
    membership_types: list[MembershipType]


class MyMembershipsResponse(BaseModel):
    active_membership: UserMembership | None = None
    membership_history: list[UserMembership] = Field(default_factory=list)


class LocationsResponse(BaseModel):
    locations: list[Location]
