"""
Expo push delivery client.
"""

from typing import Any

import httpx

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 15  # seconds


class PushDeliveryError(Exception):
    """Push API rejected the message or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ExpoPushClient:
    def __init__(
        self,
        push_url: str | None = None,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.push_url = push_url or settings.EXPO_PUSH_URL
        self.access_token = access_token or settings.EXPO_ACCESS_TOKEN
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(
        self, token: str, title: str, body: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Send one push message.

        Returns:
            The push ticket from the API

        Raises:
            PushDeliveryError: transport failure, non-2xx, or an error ticket
        """
        message = {"to": token, "sound": "default", "title": title, "body": body, "data": data or {}}

        try:
            response = await self._client.post(self.push_url, json=message, headers=self._headers())
        except httpx.RequestError as e:
            raise PushDeliveryError(f"Push API unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise PushDeliveryError(
                f"Push API returned non-JSON response ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if response.status_code >= 400 or payload.get("errors"):
            raise PushDeliveryError(
                f"Push API error ({response.status_code})",
                status_code=response.status_code,
                details=payload.get("errors"),
            )

        ticket = payload.get("data") or {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            raise PushDeliveryError(
                ticket.get("message") or "Push ticket reported an error",
                status_code=response.status_code,
                details=ticket.get("details"),
            )

        logger.debug("Push message accepted", ticket_id=ticket.get("id"))
        return ticket
