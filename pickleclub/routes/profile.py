"""
profile.py
----------
Purpose:
    Member profile endpoints.

Usage:
    GET /me  - profile with active membership and history
    PUT /me  - update editable profile fields
"""

from fastapi import APIRouter, Depends, HTTPException, status

from pickleclub.auth.verify import auth_dependency
from pickleclub.config import settings
from pickleclub.db.helpers import DatabaseError
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.api.user_request import ProfileUpdateRequest
from pickleclub.models.api.user_response import AuthMeta, UserProfileResponse
from pickleclub.models.domain.user_domain import UserProfile
from pickleclub.services import profile_service
from pickleclub.services.profile_service import ProfileServiceError
from pickleclub.services.redis_client import redis_cache

router = APIRouter(tags=["profile"])
logger = get_logger(__name__)


def _user_id(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id


def _to_response(profile: UserProfile, claims: dict) -> UserProfileResponse:
    auth = AuthMeta(
        user_id=claims.get("sub"),
        email=claims.get("email"),
        role=claims.get("role", "authenticated"),
        aud=claims.get("aud"),
        iat=claims.get("iat"),
        exp=claims.get("exp"),
    )
    return UserProfileResponse(
        profile=profile,
        auth=auth,
        checkout_ready=profile.is_checkout_ready,
        missing_fields=profile.missing_checkout_fields(),
    )


@router.get("/me", response_model=UserProfileResponse)
async def me(claims: dict = Depends(auth_dependency)):
    user_id = _user_id(claims)
    cache_key = f"profile:{user_id}"

    cached = await redis_cache.get(cache_key)
    if cached:
        return _to_response(UserProfile.model_validate_json(cached), claims)

    profile = await profile_service.get_user_profile(user_id, email=claims.get("email"))
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")

    await redis_cache.set_with_ttl(
        cache_key, profile.model_dump_json(), settings.PROFILE_CACHE_TTL_SECONDS
    )
    return _to_response(profile, claims)


@router.put("/me", response_model=UserProfileResponse)
async def update_me(request: ProfileUpdateRequest, claims: dict = Depends(auth_dependency)):
    user_id = _user_id(claims)
    updates = request.model_dump(exclude_unset=True)

    try:
        profile = await profile_service.update_user_profile(user_id, updates)
    except ProfileServiceError as e:
        logger.warning("Profile update rejected", user_id=user_id, field=e.field, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Profile update failed"
        ) from e

    if not profile.email:
        profile.email = claims.get("email")
    await redis_cache.delete(f"profile:{user_id}")
    return _to_response(profile, claims)
