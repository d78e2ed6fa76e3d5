"""
Membership checkout state machine.

`transition(state, event)` is pure: it returns the next state plus the
effects the orchestrator must run. No I/O happens here, so every path
through checkout can be unit-tested without a UI or network.

    Initializing ──► ProfileIncomplete (terminal)
         │      └──► ValidationFailed  (terminal)
         ▼
    ReadyToPay ◄──────────────┐
         │ pay                 │ charge failed
         ▼                     │
    Processing ──────────────► Failed (payable again)
         │ charge ok → activate     also when activation gets no response
         ▼
    Succeeded (activation ok, or activation answered with an error)
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pickleclub.models.domain.membership_domain import CheckoutValidation
from pickleclub.models.domain.payment_domain import (
    FetchError,
    PaymentMethod,
    to_minor_units,
)

VALIDATION_ERROR_MESSAGE = "Failed to validate checkout. Please try again."
METHOD_REQUIRED_TITLE = "Payment Method Required"
METHOD_REQUIRED_MESSAGE = "Please add a payment method to complete your purchase."
PAYMENT_FAILED_TITLE = "Payment Failed"
PAYMENT_FAILED_MESSAGE = "There was an issue processing your payment. Please try again."
SUCCESS_TITLE = "Welcome to The Pickle Co.!"
SUCCESS_MESSAGE = (
    "Your membership has been activated successfully! "
    "You can now book courts and access all member benefits."
)
PARTIAL_SUCCESS_TITLE = "Payment Processed"
PARTIAL_SUCCESS_MESSAGE = (
    "Your payment was successful, but there was an issue activating your membership. "
    "We'll finish setting it up shortly. Please contact support if it does not appear."
)
SIGN_IN_AGAIN_TITLE = "Authentication Error"


class Stage(StrEnum):
    INITIALIZING = "initializing"
    PROFILE_INCOMPLETE = "profile_incomplete"
    VALIDATION_FAILED = "validation_failed"
    READY_TO_PAY = "ready_to_pay"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({Stage.PROFILE_INCOMPLETE, Stage.VALIDATION_FAILED, Stage.SUCCEEDED})
# Failed behaves like ReadyToPay with the last error still on screen
PAYABLE_STAGES = frozenset({Stage.READY_TO_PAY, Stage.FAILED})


@dataclass(frozen=True)
class CheckoutContext:
    """What is being bought, by whom, and where."""

    user_id: str
    membership_type_id: int
    membership_name: str
    membership_display_name: str
    location_id: int
    email: str | None = None
    missing_profile_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class CheckoutState:
    stage: Stage
    context: CheckoutContext
    validation: CheckoutValidation | None = None
    payment_methods: tuple[PaymentMethod, ...] = ()
    payment_methods_error: FetchError | None = None
    selected_method_id: str | None = None
    errors: tuple[str, ...] = ()
    last_error: str | None = None
    partial_success: bool = False
    charge_attempts: int = 0

    @property
    def is_busy(self) -> bool:
        return self.stage in (Stage.INITIALIZING, Stage.PROCESSING)

    @property
    def can_pay(self) -> bool:
        return self.stage in PAYABLE_STAGES

    @property
    def selected_method(self) -> PaymentMethod | None:
        for method in self.payment_methods:
            if method.id == self.selected_method_id:
                return method
        return None


def initial_state(context: CheckoutContext) -> "CheckoutState":
    return CheckoutState(stage=Stage.INITIALIZING, context=context)


def preselect_method(methods: tuple[PaymentMethod, ...], current: str | None = None) -> str | None:
    """Keep the current choice if still present, else the default card, else the first."""
    ids = {m.id for m in methods}
    if current and current in ids:
        return current
    for method in methods:
        if method.is_default:
            return method.id
    return methods[0].id if methods else None


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Opened:
    pass


@dataclass(frozen=True)
class InitializationLoaded:
    validation: CheckoutValidation
    payment_methods: tuple[PaymentMethod, ...] = ()
    payment_methods_error: FetchError | None = None


@dataclass(frozen=True)
class InitializationFailed:
    message: str


@dataclass(frozen=True)
class MethodSelected:
    payment_method_id: str


@dataclass(frozen=True)
class AddMethodRequested:
    pass


@dataclass(frozen=True)
class PaymentMethodCollected:
    added: bool


@dataclass(frozen=True)
class PaymentMethodCollectionFailed:
    message: str


@dataclass(frozen=True)
class PaymentMethodsReloaded:
    payment_methods: tuple[PaymentMethod, ...]
    payment_methods_error: FetchError | None = None


@dataclass(frozen=True)
class PayPressed:
    idempotency_key: str = field(default_factory=lambda: uuid4().hex)


@dataclass(frozen=True)
class TokenUnavailable:
    message: str


@dataclass(frozen=True)
class ChargeSucceeded:
    payment: dict[str, Any] | None = None


@dataclass(frozen=True)
class ChargeFailed:
    message: str | None = None


@dataclass(frozen=True)
class ActivationSucceeded:
    pass


@dataclass(frozen=True)
class ActivationUnreachable:
    """Activation request sent but no response came back."""

    message: str | None = None


@dataclass(frozen=True)
class ActivationFailed:
    message: str | None = None


Event = (
    Opened
    | InitializationLoaded
    | InitializationFailed
    | MethodSelected
    | AddMethodRequested
    | PaymentMethodCollected
    | PaymentMethodCollectionFailed
    | PaymentMethodsReloaded
    | PayPressed
    | TokenUnavailable
    | ChargeSucceeded
    | ChargeFailed
    | ActivationSucceeded
    | ActivationUnreachable
    | ActivationFailed
)


# ----------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class LoadInitialData:
    pass


@dataclass(frozen=True)
class CollectPaymentMethod:
    pass


@dataclass(frozen=True)
class ReloadPaymentMethods:
    pass


@dataclass(frozen=True)
class ShowAlert:
    title: str
    message: str


@dataclass(frozen=True)
class Charge:
    amount_minor: int
    currency: str
    payment_method_id: str
    metadata: dict[str, Any]
    idempotency_key: str


@dataclass(frozen=True)
class Activate:
    user_id: str
    location_id: int
    membership_type: str


@dataclass(frozen=True)
class NotifySuccess:
    pass


Effect = (
    LoadInitialData
    | CollectPaymentMethod
    | ReloadPaymentMethods
    | ShowAlert
    | Charge
    | Activate
    | NotifySuccess
)


@dataclass(frozen=True)
class Transition:
    state: CheckoutState
    effects: tuple[Effect, ...] = ()


def _stay(state: CheckoutState) -> Transition:
    return Transition(state)


def _charge_metadata(context: CheckoutContext) -> dict[str, Any]:
    return {
        "membership_type": context.membership_type_id,
        "user_id": context.user_id,
        "location_id": context.location_id,
        "description": f"{context.membership_display_name} Membership",
    }


def _on_loaded(state: CheckoutState, event: InitializationLoaded) -> Transition:
    loaded = replace(
        state,
        validation=event.validation,
        payment_methods=tuple(event.payment_methods),
        payment_methods_error=event.payment_methods_error,
    )

    if state.context.missing_profile_fields:
        return Transition(replace(loaded, stage=Stage.PROFILE_INCOMPLETE))

    if not event.validation.valid:
        return Transition(
            replace(loaded, stage=Stage.VALIDATION_FAILED, errors=tuple(event.validation.errors))
        )

    return Transition(
        replace(
            loaded,
            stage=Stage.READY_TO_PAY,
            selected_method_id=preselect_method(loaded.payment_methods),
        )
    )


def _on_pay(state: CheckoutState, event: PayPressed) -> Transition:
    # Double submits land here while Processing and are dropped
    if not state.can_pay or state.validation is None or not state.validation.valid:
        return _stay(state)

    method = state.selected_method
    if method is None:
        return Transition(state, (ShowAlert(METHOD_REQUIRED_TITLE, METHOD_REQUIRED_MESSAGE),))

    charge = Charge(
        amount_minor=to_minor_units(Decimal(state.validation.total_amount)),
        currency=state.validation.currency,
        payment_method_id=method.id,
        metadata=_charge_metadata(state.context),
        idempotency_key=event.idempotency_key,
    )
    next_state = replace(
        state,
        stage=Stage.PROCESSING,
        last_error=None,
        charge_attempts=state.charge_attempts + 1,
    )
    return Transition(next_state, (charge,))


def _fail_charge(state: CheckoutState, title: str, message: str | None) -> Transition:
    message = message or PAYMENT_FAILED_MESSAGE
    return Transition(
        replace(state, stage=Stage.FAILED, last_error=message),
        (ShowAlert(title, message),),
    )


def transition(state: CheckoutState, event: Event) -> Transition:
    """Advance the checkout. Events that do not apply to the current stage are ignored."""
    stage = state.stage

    match event:
        case Opened():
            if stage is Stage.INITIALIZING:
                return Transition(state, (LoadInitialData(),))
            return _stay(state)

        case InitializationLoaded() if stage is Stage.INITIALIZING:
            return _on_loaded(state, event)

        case InitializationFailed() if stage is Stage.INITIALIZING:
            return Transition(
                replace(state, stage=Stage.VALIDATION_FAILED, errors=(VALIDATION_ERROR_MESSAGE,)),
                (ShowAlert("Error", VALIDATION_ERROR_MESSAGE),),
            )

        case MethodSelected() if state.can_pay:
            if any(m.id == event.payment_method_id for m in state.payment_methods):
                return _stay(replace(state, selected_method_id=event.payment_method_id))
            return _stay(state)

        case AddMethodRequested() if state.can_pay:
            return Transition(state, (CollectPaymentMethod(),))

        case PaymentMethodCollected() if state.can_pay:
            # Cancelling the card sheet is silent
            if event.added:
                return Transition(state, (ReloadPaymentMethods(),))
            return _stay(state)

        case PaymentMethodCollectionFailed() if state.can_pay:
            return Transition(state, (ShowAlert("Error", event.message),))

        case PaymentMethodsReloaded() if state.can_pay:
            methods = tuple(event.payment_methods)
            return _stay(
                replace(
                    state,
                    payment_methods=methods,
                    payment_methods_error=event.payment_methods_error,
                    selected_method_id=preselect_method(methods, state.selected_method_id),
                )
            )

        case PayPressed():
            return _on_pay(state, event)

        case TokenUnavailable() if stage is Stage.PROCESSING:
            return _fail_charge(state, SIGN_IN_AGAIN_TITLE, event.message)

        case ChargeFailed() if stage is Stage.PROCESSING:
            return _fail_charge(state, PAYMENT_FAILED_TITLE, event.message)

        case ChargeSucceeded() if stage is Stage.PROCESSING:
            context = state.context
            return Transition(
                state,
                (
                    Activate(
                        user_id=context.user_id,
                        location_id=context.location_id,
                        membership_type=context.membership_name.lower(),
                    ),
                ),
            )

        case ActivationSucceeded() if stage is Stage.PROCESSING:
            return Transition(
                replace(state, stage=Stage.SUCCEEDED),
                (ShowAlert(SUCCESS_TITLE, SUCCESS_MESSAGE), NotifySuccess()),
            )

        case ActivationUnreachable() if stage is Stage.PROCESSING:
            return _fail_charge(state, PAYMENT_FAILED_TITLE, event.message)

        case ActivationFailed() if stage is Stage.PROCESSING:
            # The member has paid; never present this as a failure that invites a retry
            return Transition(
                replace(state, stage=Stage.SUCCEEDED, partial_success=True),
                (ShowAlert(PARTIAL_SUCCESS_TITLE, PARTIAL_SUCCESS_MESSAGE), NotifySuccess()),
            )

    return _stay(state)
