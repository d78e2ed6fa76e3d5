"""
Session/profile store.

Holds the current authenticated session and the member's cached
profile. Passed explicitly to the components that need it (checkout,
notification registration) instead of living in a global.

Profile cache: Redis, key "profile:<user_id>", invalidated on update
and sign-out.
"""

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.user_domain import UserProfile
from pickleclub.services import profile_service
from pickleclub.services.auth_client import AuthError, AuthSession, SupabaseAuthClient

logger = get_logger(__name__)


class AuthEvent(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


AuthListener = Callable[[AuthEvent, AuthSession | None], Awaitable[None]]


class ProfileCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool: ...

    async def delete(self, key: str) -> bool: ...


class NotAuthenticatedError(Exception):
    """Operation requires a signed-in user."""


def _cache_key(user_id: str) -> str:
    return f"profile:{user_id}"


class SessionStore:
    def __init__(
        self,
        auth_client: SupabaseAuthClient,
        cache: ProfileCache | None = None,
        profiles=profile_service,
        cache_ttl_s: int | None = None,
    ):
        self.auth = auth_client
        self.cache = cache
        self.profiles = profiles
        self.cache_ttl_s = cache_ttl_s or settings.PROFILE_CACHE_TTL_SECONDS

        self.session: AuthSession | None = None
        self.profile: UserProfile | None = None
        self._listeners: list[AuthListener] = []

    # ------------------------------------------------------------------
    # Auth state
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> str | None:
        return self.session.user.id if self.session else None

    def on_auth_state_change(self, listener: AuthListener) -> None:
        self._listeners.append(listener)

    async def _emit(self, event: AuthEvent) -> None:
        for listener in self._listeners:
            try:
                await listener(event, self.session)
            except Exception as e:
                logger.error("Auth listener failed", auth_event=event.value, error=str(e))

    async def initialize(self, session: AuthSession | None) -> None:
        """Adopt a persisted session (e.g. restored from the device) and load the profile."""
        self.session = session
        if session:
            await self.refresh_profile()
            await self._emit(AuthEvent.SIGNED_IN)

    async def sign_in(self, email: str, password: str) -> UserProfile | None:
        self.session = await self.auth.sign_in_with_password(email, password)
        profile = await self.refresh_profile()
        await self._emit(AuthEvent.SIGNED_IN)
        return profile

    async def sign_up(
        self, email: str, password: str, user_data: dict[str, Any]
    ) -> UserProfile | None:
        """
        Register, then create the users row. A failed row upsert is logged
        only: the auth user already exists and the profile can be
        completed later.
        """
        user, session = await self.auth.sign_up(email, password, user_data)
        self.session = session

        try:
            await self.profiles.upsert_user_profile(
                user.id,
                email=user.email or email,
                first_name=user_data.get("first_name"),
                last_name=user_data.get("last_name"),
                phone=user_data.get("phone"),
            )
        except Exception as e:
            logger.error("Error creating user profile", user_id=user.id, error=str(e))

        if not session:
            logger.info("Sign-up pending email confirmation", user_id=user.id)
            return None

        profile = await self.refresh_profile()
        await self._emit(AuthEvent.SIGNED_IN)
        return profile

    async def sign_out(self) -> None:
        session = self.session
        if session:
            try:
                await self.auth.sign_out(session.access_token)
            except AuthError as e:
                # Local sign-out still proceeds; the token expires on its own
                logger.warning("Remote sign-out failed", error=str(e))
            if self.cache:
                await self.cache.delete(_cache_key(session.user.id))

        self.session = None
        self.profile = None
        await self._emit(AuthEvent.SIGNED_OUT)

    async def get_access_token(self) -> str | None:
        """
        A usable access token, read fresh on every call.

        Refreshes the session when it is expired or about to expire.
        Returns None when there is no session or the refresh fails.
        """
        if not self.session:
            return None

        if self.session.is_expired():
            try:
                self.session = await self.auth.refresh_session(self.session.refresh_token)
            except AuthError as e:
                logger.warning("Session refresh failed", user_id=self.user_id, error=str(e))
                return None
            await self._emit(AuthEvent.TOKEN_REFRESHED)

        return self.session.access_token

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_profile(self) -> UserProfile | None:
        """Profile from memory, then cache, then the database."""
        if self.profile:
            return self.profile
        if not self.session:
            return None

        if self.cache:
            cached = await self.cache.get(_cache_key(self.session.user.id))
            if cached:
                self.profile = UserProfile.model_validate_json(cached)
                return self.profile

        return await self.refresh_profile()

    async def refresh_profile(self) -> UserProfile | None:
        """Reload the profile from the database and re-prime the cache."""
        if not self.session:
            return None

        user = self.session.user
        profile = await self.profiles.get_user_profile(user.id, email=user.email)
        if profile is None:
            logger.warning("Profile refresh returned nothing", user_id=user.id)
            return self.profile

        self.profile = profile
        await self._cache_profile(profile)
        return profile

    async def update_profile(self, updates: dict[str, Any]) -> UserProfile:
        if not self.session:
            raise NotAuthenticatedError("Not authenticated")

        profile = await self.profiles.update_user_profile(self.session.user.id, updates)
        if not profile.email:
            profile.email = self.session.user.email
        self.profile = profile
        await self._cache_profile(profile)
        return profile

    async def _cache_profile(self, profile: UserProfile) -> None:
        if self.cache:
            await self.cache.set_with_ttl(
                _cache_key(profile.id), profile.model_dump_json(), self.cache_ttl_s
            )
