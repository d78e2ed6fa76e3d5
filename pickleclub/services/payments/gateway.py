"""
Payments backend client.

Every interaction with the payment processor goes through the club's
payments API (which fronts Stripe). The checkout flow only ever talks
to this class.

Read paths (saved cards) never raise and return a FetchResult; write
paths raise PaymentGatewayError subclasses whose message is safe to
show to the member.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger
from pickleclub.models.domain.payment_domain import (
    FetchError,
    FetchResult,
    PaymentConfirmation,
    PaymentIntent,
    PaymentMethod,
    PaymentRecord,
)
from pickleclub.services.payments.card_collection import (
    CardCollectionStatus,
    CardCollector,
    CardSheetConfig,
)
from pickleclub.services.payments.errors import (
    BackendUnavailable,
    BackendUnreachable,
    NoAuthToken,
    PaymentConfigurationError,
    PaymentGatewayError,
    ProcessorRejected,
)

logger = get_logger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]

REQUEST_TIMEOUT = 20  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5
# Only idempotent GETs are retried; charges never are
RETRY_STATUS_CODES = {502, 503, 504}


def _is_html(response: httpx.Response) -> bool:
    return "text/html" in response.headers.get("content-type", "")


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response, fallback: str) -> str:
    body = _json_or_none(response)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        message = error or body.get("message")
        if message:
            return str(message)
    return f"{fallback} ({response.status_code}): {response.text[:200]}"


def _is_decline(response: httpx.Response) -> bool:
    if response.status_code == 402:
        return True
    body = _json_or_none(response)
    if not isinstance(body, dict):
        return False
    error = body.get("error") if isinstance(body.get("error"), dict) else body
    return error.get("type") == "card_error" or "decline_code" in error


class PaymentGatewayClient:
    """
    Client for the /api/stripe/* and /api/membership/* endpoints.

    Args:
        token_provider: Coroutine returning a fresh bearer token (or None)
        card_collector: Presents the hosted card sheet
        base_url: Payments API root, defaults to settings
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        card_collector: CardCollector | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int = MAX_RETRIES,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self._token_provider = token_provider
        self._card_collector = card_collector
        self.base_url = (base_url or settings.PAYMENTS_API_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _auth_headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        token = await self._token_provider()
        if not token:
            raise NoAuthToken()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET with retry on connection errors and gateway timeouts."""
        headers = await self._auth_headers()
        url = f"{self.base_url}{path}"

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise
                logger.debug("Payments API request error, retrying", path=path, attempt=attempt, error=str(e))
            else:
                if response.status_code not in RETRY_STATUS_CODES or attempt >= self.max_retries:
                    return response
                logger.debug(
                    "Payments API transient status, retrying",
                    path=path,
                    attempt=attempt,
                    status_code=response.status_code,
                )
            await asyncio.sleep(self.backoff_factor * (2 ** (attempt - 1)))

        raise RuntimeError("Payments API retry loop exhausted")

    async def _send(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        idempotency_key: str | None = None,
    ) -> httpx.Response:
        """Single-attempt write. Transport errors become BackendUnavailable."""
        headers = await self._auth_headers(idempotency_key)
        try:
            return await self._client.request(
                method, f"{self.base_url}{path}", json=json, params=params, headers=headers
            )
        except httpx.RequestError as e:
            logger.error("Payments API unreachable", operation=operation, error=str(e))
            raise BackendUnreachable(
                "Could not reach the payment service. Please check your connection and try again.",
                operation=operation,
            ) from e

    def _raise_for_write(self, response: httpx.Response, operation: str, fallback: str) -> None:
        if response.is_success:
            return
        message = _error_message(response, fallback)
        logger.error(
            "Payments API write failed",
            operation=operation,
            status_code=response.status_code,
            error=message,
        )
        error_cls = ProcessorRejected if _is_decline(response) else BackendUnavailable
        raise error_cls(message, status_code=response.status_code, operation=operation)

    def _parse_json(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        body = _json_or_none(response)
        if not isinstance(body, dict):
            logger.error("Payments API returned non-JSON body", operation=operation)
            raise BackendUnavailable(
                "Unexpected response from the payment service", operation=operation
            )
        return body

    # ------------------------------------------------------------------
    # Saved cards
    # ------------------------------------------------------------------

    async def list_payment_methods(self, user_id: str) -> FetchResult[list[PaymentMethod]]:
        """
        Saved cards for a user. Never raises: on any failure the value is
        an empty list and `error` says why, so the caller can still offer
        "add a card".
        """
        try:
            response = await self._get("/api/stripe/payment-methods", params={"userId": user_id})
        except NoAuthToken as e:
            return FetchResult([], FetchError.AUTH_MISSING, str(e))
        except httpx.RequestError as e:
            logger.warning("Payment methods fetch failed", user_id=user_id, error=str(e))
            return FetchResult([], FetchError.NETWORK, str(e))

        if _is_html(response):
            # Missing backend route served the site's HTML 404 page
            logger.warning(
                "Payment methods endpoint returned HTML",
                user_id=user_id,
                status_code=response.status_code,
            )
            return FetchResult([], FetchError.HTML_RESPONSE, f"HTTP {response.status_code}")

        if not response.is_success:
            detail = _error_message(response, "Failed to fetch payment methods")
            logger.warning("Payment methods fetch rejected", user_id=user_id, error=detail)
            return FetchResult([], FetchError.BACKEND_ERROR, detail)

        body = _json_or_none(response)
        if not isinstance(body, dict):
            return FetchResult([], FetchError.INVALID_JSON, response.text[:100])

        try:
            methods = [PaymentMethod.from_api(item) for item in body.get("paymentMethods") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return FetchResult([], FetchError.INVALID_JSON, str(e))

        logger.info("Payment methods loaded", user_id=user_id, count=len(methods))
        return FetchResult(methods)

    async def add_payment_method(self, user_id: str, email: str | None = None) -> bool:
        """
        Save a new card: setup intent → hosted card sheet.

        Returns:
            True when the card was saved, False when the member cancelled

        Raises:
            PaymentGatewayError: any other failure, message ready for display
        """
        if self._card_collector is None:
            raise PaymentGatewayError("Card collection is not available on this device")

        response = await self._send(
            "POST", "/api/stripe/setup-intent", "setup_intent", json={"userId": user_id}
        )
        if not response.is_success:
            logger.error(
                "Setup intent request failed",
                user_id=user_id,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise BackendUnavailable(
                "The payment system is being set up. Please contact support to add your payment method.",
                status_code=response.status_code,
                operation="setup_intent",
            )

        data = self._parse_json(response, "setup_intent")
        client_secret = data.get("client_secret") or data.get("clientSecret")
        if not client_secret:
            raise BackendUnavailable(
                "Backend did not provide a client secret for the setup intent",
                operation="setup_intent",
            )

        result = await self._card_collector.collect(
            CardSheetConfig(
                client_secret=client_secret,
                merchant_display_name=settings.MERCHANT_DISPLAY_NAME,
                return_url=settings.APP_RETURN_URL,
                email=email,
            )
        )

        if result.status is CardCollectionStatus.CANCELED:
            logger.info("Card collection cancelled", user_id=user_id)
            return False
        if result.status is CardCollectionStatus.FAILED:
            raise ProcessorRejected(
                f"Failed to show payment form: {result.error_message}", operation="card_sheet"
            )

        logger.info("Payment method added", user_id=user_id)
        return True

    async def set_default_payment_method(self, user_id: str, payment_method_id: str) -> None:
        response = await self._send(
            "POST",
            "/api/stripe/payment-methods/default",
            "set_default_payment_method",
            json={"user_id": user_id, "payment_method_id": payment_method_id},
        )
        self._raise_for_write(
            response, "set_default_payment_method", "Failed to set default payment method"
        )

    async def remove_payment_method(self, payment_method_id: str) -> None:
        response = await self._send(
            "DELETE",
            "/api/stripe/payment-methods",
            "remove_payment_method",
            params={"paymentMethodId": payment_method_id},
        )
        self._raise_for_write(response, "remove_payment_method", "Failed to remove payment method")

    # ------------------------------------------------------------------
    # Billing history
    # ------------------------------------------------------------------

    async def fetch_payment_history(self, user_id: str, limit: int = 50) -> list[PaymentRecord]:
        """Past charges, newest first. Raises on any failure."""
        try:
            response = await self._get(
                "/api/stripe/payment-history", params={"userId": user_id, "limit": limit}
            )
        except httpx.RequestError as e:
            raise BackendUnavailable(
                "Could not load payment history", operation="payment_history"
            ) from e

        if not response.is_success:
            raise BackendUnavailable(
                _error_message(response, "Failed to fetch payment history"),
                status_code=response.status_code,
                operation="payment_history",
            )

        data = self._parse_json(response, "payment_history")
        return [PaymentRecord.from_api(item) for item in data.get("payments") or []][:limit]

    async def download_invoice(self, invoice_id: str) -> str:
        """URL of an invoice PDF."""
        try:
            response = await self._get(f"/api/stripe/invoice/{invoice_id}/pdf")
        except httpx.RequestError as e:
            raise BackendUnavailable("Failed to download invoice", operation="invoice") from e

        if not response.is_success:
            raise BackendUnavailable(
                _error_message(response, "Failed to download invoice"),
                status_code=response.status_code,
                operation="invoice",
            )
        return self._parse_json(response, "invoice")["pdf_url"]

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        """
        Create a card-only intent. Redirect-based methods are disabled
        because the app has no return-URL round trip.

        Args:
            amount: Integer minor units (centavos)
        """
        payload = {
            "amount": amount,
            "currency": currency,
            "paymentMethodId": payment_method_id,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
            "payment_method_types": ["card"],
            "confirmation_method": "manual",
            "confirm": False,
            "return_url": settings.payment_return_url(),
        }
        logger.info(
            "Creating payment intent",
            amount=amount,
            currency=currency,
            payment_method_id=payment_method_id,
        )

        response = await self._send(
            "POST",
            "/api/stripe/create-payment-intent",
            "create_payment_intent",
            json=payload,
            idempotency_key=idempotency_key,
        )
        self._raise_for_write(response, "create_payment_intent", "Failed to create payment intent")

        data = self._parse_json(response, "create_payment_intent")
        return PaymentIntent(
            client_secret=data.get("clientSecret") or data.get("client_secret"),
            payment_intent_id=data.get("paymentIntentId")
            or data.get("payment_intent_id")
            or data.get("id"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            status=data.get("status"),
        )

    async def confirm_payment(
        self,
        payment_intent_id: str,
        metadata: dict[str, Any],
        return_url: str | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentConfirmation:
        response = await self._send(
            "POST",
            "/api/stripe/confirm-payment",
            "confirm_payment",
            json={
                "paymentIntentId": payment_intent_id,
                "metadata": metadata,
                "return_url": return_url,
            },
            idempotency_key=idempotency_key,
        )

        if not response.is_success:
            body = _json_or_none(response)
            details = body.get("details") if isinstance(body, dict) else None
            if isinstance(details, str) and "return_url" in details:
                logger.error(
                    "Payment confirmation misconfigured",
                    payment_intent_id=payment_intent_id,
                    details=details,
                )
                raise PaymentConfigurationError(
                    "Payment configuration error: the payment service must use "
                    "automatic_payment_methods with allow_redirects: never for card-only payments.",
                    status_code=response.status_code,
                    operation="confirm_payment",
                )
            self._raise_for_write(response, "confirm_payment", "Failed to confirm payment")

        data = self._parse_json(response, "confirm_payment")
        logger.info(
            "Payment confirmation received",
            payment_intent_id=payment_intent_id,
            success=bool(data.get("success")),
        )
        return PaymentConfirmation(success=bool(data.get("success")), payment=data.get("payment"))

    async def activate_membership(
        self, user_id: str, location_id: int | str, membership_type: str
    ) -> dict[str, Any]:
        """Flip the member's membership to active after a successful charge."""
        response = await self._send(
            "POST",
            "/api/membership/activate",
            "activate_membership",
            json={
                "userId": user_id,
                "locationId": str(location_id),
                "membershipType": membership_type.lower(),
            },
        )
        self._raise_for_write(response, "activate_membership", "Failed to activate membership")
        return self._parse_json(response, "activate_membership")
