"""
Supabase Auth (GoTrue) client.
Password sign-in, sign-up, session refresh and sign-out over the
/auth/v1 REST endpoints.
"""

import time
from typing import Any

import httpx
from pydantic import BaseModel

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 10  # seconds
# Refresh a session this many seconds before it actually expires
EXPIRY_MARGIN_SECONDS = 60


class AuthError(Exception):
    """Raised when Supabase Auth rejects a request or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthUser(BaseModel):
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = {}


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: int
    user: AuthUser

    def is_expired(self, margin: int = EXPIRY_MARGIN_SECONDS) -> bool:
        return time.time() >= self.expires_at - margin

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AuthSession":
        expires_at = data.get("expires_at") or int(time.time()) + int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=expires_at,
            user=AuthUser(**data["user"]),
        )


class SupabaseAuthClient:
    """Thin async wrapper around the GoTrue REST API."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, client=None):
        self.base_url = (base_url or settings.auth_url()).rstrip("/")
        self.api_key = api_key or settings.SUPABASE_ANON_KEY
        self._client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _post(self, path: str, payload: dict | None, operation: str, **kwargs) -> dict:
        try:
            response = await self._client.post(
                f"{self.base_url}{path}", json=payload, **kwargs
            )
        except httpx.RequestError as e:
            logger.error("Supabase Auth unreachable", operation=operation, error=str(e))
            raise AuthError(f"{operation} failed: auth service unreachable") from e

        if response.is_success:
            return response.json() if response.content else {}

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or f"{operation} failed ({response.status_code})"
        )
        logger.warning(
            "Supabase Auth request rejected",
            operation=operation,
            status_code=response.status_code,
            error=message,
        )
        raise AuthError(message, status_code=response.status_code)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = await self._post(
            "/token",
            {"email": email, "password": password},
            "sign_in",
            params={"grant_type": "password"},
            headers=self._headers(),
        )
        logger.info("User signed in", user_id=data.get("user", {}).get("id"))
        return AuthSession.from_api(data)

    async def sign_up(
        self, email: str, password: str, user_data: dict[str, Any] | None = None
    ) -> tuple[AuthUser, AuthSession | None]:
        """
        Register a new user. When email confirmation is enabled Supabase
        returns only the user, so the session is optional.
        """
        data = await self._post(
            "/signup",
            {"email": email, "password": password, "data": user_data or {}},
            "sign_up",
            headers=self._headers(),
        )
        if "access_token" in data:
            session = AuthSession.from_api(data)
            return session.user, session
        return AuthUser(**(data.get("user") or data)), None

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        data = await self._post(
            "/token",
            {"refresh_token": refresh_token},
            "refresh_session",
            params={"grant_type": "refresh_token"},
            headers=self._headers(),
        )
        return AuthSession.from_api(data)

    async def sign_out(self, access_token: str) -> None:
        await self._post("/logout", None, "sign_out", headers=self._headers(access_token))
