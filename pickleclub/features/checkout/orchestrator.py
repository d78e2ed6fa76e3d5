"""
Checkout orchestrator.

Feeds member actions and remote results into the checkout state machine
and executes the effects it returns. All collaborators are injected so
the flow can run against fakes in tests and against the real payments
backend in the app.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from pickleclub.config import Settings, settings as default_settings
from pickleclub.features.checkout.state_machine import (
    Activate,
    ActivationFailed,
    ActivationSucceeded,
    ActivationUnreachable,
    AddMethodRequested,
    Charge,
    ChargeFailed,
    ChargeSucceeded,
    CheckoutContext,
    CheckoutState,
    CollectPaymentMethod,
    Effect,
    Event,
    InitializationFailed,
    InitializationLoaded,
    LoadInitialData,
    MethodSelected,
    NotifySuccess,
    Opened,
    PaymentMethodCollected,
    PaymentMethodCollectionFailed,
    PaymentMethodsReloaded,
    PayPressed,
    ReloadPaymentMethods,
    ShowAlert,
    TokenUnavailable,
    initial_state,
    transition,
)
from pickleclub.infrastructure.observability.logging import get_logger, log_payment_event
from pickleclub.models.domain.membership_domain import (
    CheckoutValidation,
    MembershipType,
    display_name_for,
)
from pickleclub.models.domain.user_domain import UserProfile
from pickleclub.services import membership_service
from pickleclub.services.payments import (
    BackendUnreachable,
    NoAuthToken,
    PaymentGatewayClient,
    PaymentGatewayError,
    UserCancelled,
)

logger = get_logger(__name__)

CheckoutValidator = Callable[[int, int, str], Awaitable[CheckoutValidation]]
SuccessCallback = Callable[[], Awaitable[None]]


class CheckoutPresenter(Protocol):
    """UI seam: renders state changes and shows blocking alerts."""

    def render(self, state: CheckoutState) -> None: ...

    async def show_alert(self, title: str, message: str) -> None: ...


class CheckoutNotOpenError(RuntimeError):
    pass


class CheckoutOrchestrator:
    """
    Drives one membership checkout from open to active membership.

    Args:
        gateway: Payments backend client
        presenter: Renders state and alerts
        on_success: Called once the member has paid, so the caller can
            refresh membership state
        validate_checkout: Server-side checkout validation
    """

    def __init__(
        self,
        gateway: PaymentGatewayClient,
        presenter: CheckoutPresenter,
        on_success: SuccessCallback,
        validate_checkout: CheckoutValidator | None = None,
        settings: Settings | None = None,
    ):
        self.gateway = gateway
        self.presenter = presenter
        self.on_success = on_success
        self.validate_checkout = validate_checkout or membership_service.validate_checkout
        self.settings = settings or default_settings
        self._state: CheckoutState | None = None

    @property
    def state(self) -> CheckoutState:
        if self._state is None:
            raise CheckoutNotOpenError("Checkout has not been opened")
        return self._state

    # ------------------------------------------------------------------
    # Member actions
    # ------------------------------------------------------------------

    async def open(
        self,
        profile: UserProfile,
        membership_type: MembershipType,
        location_id: int | None = None,
    ) -> CheckoutState:
        context = CheckoutContext(
            user_id=profile.id,
            email=profile.email,
            membership_type_id=membership_type.id,
            membership_name=membership_type.name,
            membership_display_name=membership_type.display_name
            or display_name_for(membership_type.name),
            location_id=location_id or self.settings.DEFAULT_LOCATION_ID,
            missing_profile_fields=tuple(profile.missing_checkout_fields()),
        )
        self._state = initial_state(context)
        log_payment_event(
            "checkout_opened",
            context.user_id,
            membership_type=context.membership_name,
            location_id=context.location_id,
        )
        return await self.dispatch(Opened())

    async def select_payment_method(self, payment_method_id: str) -> CheckoutState:
        return await self.dispatch(MethodSelected(payment_method_id))

    async def add_payment_method(self) -> CheckoutState:
        return await self.dispatch(AddMethodRequested())

    async def pay(self) -> CheckoutState:
        return await self.dispatch(PayPressed())

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    async def dispatch(self, event: Event) -> CheckoutState:
        """Apply an event, then run the resulting effects (which may dispatch more events)."""
        previous = self.state
        result = transition(previous, event)
        self._state = result.state

        if result.state.stage is not previous.stage:
            logger.info(
                "Checkout stage changed",
                user_id=result.state.context.user_id,
                from_stage=previous.stage.value,
                to_stage=result.state.stage.value,
                trigger=type(event).__name__,
            )
        self.presenter.render(result.state)

        for effect in result.effects:
            follow_up = await self._run_effect(effect)
            if follow_up is not None:
                await self.dispatch(follow_up)

        return self.state

    async def _run_effect(self, effect: Effect) -> Event | None:
        match effect:
            case LoadInitialData():
                return await self._load_initial_data()
            case CollectPaymentMethod():
                return await self._collect_payment_method()
            case ReloadPaymentMethods():
                result = await self.gateway.list_payment_methods(self.state.context.user_id)
                return PaymentMethodsReloaded(tuple(result.value), result.error)
            case ShowAlert(title=title, message=message):
                await self.presenter.show_alert(title, message)
            case Charge():
                return await self._charge(effect)
            case Activate():
                return await self._activate(effect)
            case NotifySuccess():
                await self._notify_success()
        return None

    # ------------------------------------------------------------------
    # Effect handlers
    # ------------------------------------------------------------------

    async def _load_initial_data(self) -> Event:
        context = self.state.context
        try:
            validation, methods = await asyncio.gather(
                self.validate_checkout(
                    context.membership_type_id, context.location_id, context.user_id
                ),
                self.gateway.list_payment_methods(context.user_id),
            )
        except Exception as e:
            logger.error("Checkout initialization failed", user_id=context.user_id, error=str(e))
            return InitializationFailed(str(e))

        if methods.error:
            logger.warning(
                "Checkout continuing without saved cards",
                user_id=context.user_id,
                reason=methods.error.value,
                detail=methods.detail,
            )
        return InitializationLoaded(validation, tuple(methods.value), methods.error)

    async def _collect_payment_method(self) -> Event:
        context = self.state.context
        try:
            added = await self.gateway.add_payment_method(context.user_id, email=context.email)
        except UserCancelled:
            return PaymentMethodCollected(added=False)
        except PaymentGatewayError as e:
            logger.error("Adding payment method failed", user_id=context.user_id, error=str(e))
            return PaymentMethodCollectionFailed(str(e))
        return PaymentMethodCollected(added=added)

    async def _charge(self, charge: Charge) -> Event:
        context = self.state.context
        log_payment_event(
            "charge_started",
            context.user_id,
            amount=charge.amount_minor,
            currency=charge.currency,
            payment_method_id=charge.payment_method_id,
            idempotency_key=charge.idempotency_key,
        )
        try:
            intent = await self.gateway.create_payment_intent(
                charge.amount_minor,
                charge.currency,
                charge.payment_method_id,
                charge.metadata,
                idempotency_key=f"{charge.idempotency_key}:create",
            )
            if not intent.client_secret or not intent.payment_intent_id:
                return ChargeFailed("Failed to create payment intent")

            confirmation = await self.gateway.confirm_payment(
                intent.payment_intent_id,
                charge.metadata,
                return_url=self.settings.payment_return_url(),
                idempotency_key=f"{charge.idempotency_key}:confirm",
            )
        except NoAuthToken as e:
            return TokenUnavailable(str(e))
        except PaymentGatewayError as e:
            log_payment_event("charge_failed", context.user_id, error=str(e), operation=e.operation)
            return ChargeFailed(str(e))
        except Exception as e:
            logger.exception("Unexpected charge error", user_id=context.user_id)
            return ChargeFailed(str(e) or None)

        if not confirmation.success:
            log_payment_event("charge_failed", context.user_id, error="confirmation_unsuccessful")
            return ChargeFailed("Payment confirmation failed")

        log_payment_event(
            "charge_succeeded", context.user_id, payment_intent_id=intent.payment_intent_id
        )
        return ChargeSucceeded(confirmation.payment)

    async def _activate(self, activate: Activate) -> Event:
        try:
            await self.gateway.activate_membership(
                activate.user_id, activate.location_id, activate.membership_type
            )
        except (BackendUnreachable, NoAuthToken) as e:
            logger.error(
                "Membership activation got no response",
                user_id=activate.user_id,
                location_id=activate.location_id,
                error=str(e),
            )
            return ActivationUnreachable(str(e))
        except Exception as e:
            # Paid but not active: reconciled on the backend, never re-charged here
            logger.error(
                "Membership activation failed after successful charge",
                user_id=activate.user_id,
                location_id=activate.location_id,
                membership_type=activate.membership_type,
                error=str(e),
            )
            return ActivationFailed(str(e))

        log_payment_event(
            "membership_activated",
            activate.user_id,
            location_id=activate.location_id,
            membership_type=activate.membership_type,
        )
        return ActivationSucceeded()

    async def _notify_success(self) -> None:
        try:
            await self.on_success()
        except Exception as e:
            logger.error(
                "Checkout success callback failed",
                user_id=self.state.context.user_id,
                error=str(e),
            )
