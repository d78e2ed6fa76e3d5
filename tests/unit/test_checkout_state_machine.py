"""
Tests for the pure checkout transition function.
"""

from decimal import Decimal

from pickleclub.features.checkout.state_machine import (
    METHOD_REQUIRED_TITLE,
    PARTIAL_SUCCESS_TITLE,
    PAYMENT_FAILED_TITLE,
    SUCCESS_TITLE,
    Activate,
    ActivationFailed,
    ActivationSucceeded,
    ActivationUnreachable,
    AddMethodRequested,
    Charge,
    ChargeFailed,
    ChargeSucceeded,
    CheckoutContext,
    CollectPaymentMethod,
    InitializationFailed,
    InitializationLoaded,
    LoadInitialData,
    MethodSelected,
    NotifySuccess,
    Opened,
    PaymentMethodCollected,
    PaymentMethodsReloaded,
    PayPressed,
    ReloadPaymentMethods,
    ShowAlert,
    Stage,
    TokenUnavailable,
    initial_state,
    preselect_method,
    transition,
)
from pickleclub.models.domain.membership_domain import CheckoutValidation
from pickleclub.models.domain.payment_domain import FetchError, PaymentMethod

CONTEXT = CheckoutContext(
    user_id="user-1",
    membership_type_id=2,
    membership_name="Ultimate",
    membership_display_name="Ultimate",
    location_id=5,
)
VALID = CheckoutValidation(valid=True, total_amount=Decimal("450.00"), currency="mxn")
VISA = PaymentMethod(id="pm_visa", brand="visa", last4="4242")
AMEX = PaymentMethod(id="pm_amex", brand="amex", last4="0005", is_default=True)


def _ready(methods=(VISA, AMEX), validation=VALID, context=CONTEXT):
    state = initial_state(context)
    return transition(state, InitializationLoaded(validation, methods)).state


def _processing():
    return transition(_ready(), PayPressed("key-1")).state


def test_open_requests_initial_data():
    result = transition(initial_state(CONTEXT), Opened())

    assert result.state.stage is Stage.INITIALIZING
    assert result.effects == (LoadInitialData(),)


def test_loaded_with_valid_checkout_is_ready_and_preselects_default():
    state = _ready()

    assert state.stage is Stage.READY_TO_PAY
    assert state.selected_method_id == "pm_amex"


def test_preselect_order():
    assert preselect_method((VISA, AMEX)) == "pm_amex"
    assert preselect_method((VISA,)) == "pm_visa"
    assert preselect_method(()) is None
    assert preselect_method((VISA, AMEX), current="pm_visa") == "pm_visa"


def test_missing_profile_fields_is_terminal():
    context = CheckoutContext(
        user_id="user-1",
        membership_type_id=2,
        membership_name="ultimate",
        membership_display_name="Ultimate",
        location_id=5,
        missing_profile_fields=("phone",),
    )
    state = _ready(context=context)

    assert state.stage is Stage.PROFILE_INCOMPLETE
    assert transition(state, PayPressed("k")).effects == ()


def test_invalid_validation_blocks_payment():
    invalid = CheckoutValidation(
        valid=False, errors=["You already have an active membership at this location"]
    )
    state = _ready(validation=invalid)

    assert state.stage is Stage.VALIDATION_FAILED
    assert state.errors == ("You already have an active membership at this location",)

    result = transition(state, PayPressed("k"))
    assert not any(isinstance(e, Charge) for e in result.effects)
    assert result.state.stage is Stage.VALIDATION_FAILED


def test_initialization_failure_shows_generic_error():
    result = transition(initial_state(CONTEXT), InitializationFailed("boom"))

    assert result.state.stage is Stage.VALIDATION_FAILED
    assert result.effects == (ShowAlert("Error", "Failed to validate checkout. Please try again."),)


def test_empty_payment_methods_still_ready():
    state = transition(
        initial_state(CONTEXT),
        InitializationLoaded(VALID, (), FetchError.HTML_RESPONSE),
    ).state

    assert state.stage is Stage.READY_TO_PAY
    assert state.selected_method_id is None
    assert state.payment_methods_error is FetchError.HTML_RESPONSE


def test_pay_without_method_is_recoverable_message():
    state = _ready(methods=())

    result = transition(state, PayPressed("k"))

    assert result.state.stage is Stage.READY_TO_PAY
    assert len(result.effects) == 1
    assert result.effects[0].title == METHOD_REQUIRED_TITLE


def test_pay_emits_single_charge_in_minor_units():
    result = transition(_ready(), PayPressed("key-1"))

    assert result.state.stage is Stage.PROCESSING
    assert result.state.charge_attempts == 1
    (charge,) = result.effects
    assert isinstance(charge, Charge)
    assert charge.amount_minor == 45000
    assert charge.currency == "mxn"
    assert charge.payment_method_id == "pm_amex"
    assert charge.idempotency_key == "key-1"
    assert charge.metadata["user_id"] == "user-1"


def test_pay_while_processing_is_ignored():
    state = _processing()

    result = transition(state, PayPressed("key-2"))

    assert result.state is state
    assert result.effects == ()


def test_each_pay_attempt_gets_new_idempotency_key():
    assert PayPressed().idempotency_key != PayPressed().idempotency_key


def test_select_method_only_among_loaded():
    state = _ready()

    assert transition(state, MethodSelected("pm_visa")).state.selected_method_id == "pm_visa"
    assert transition(state, MethodSelected("pm_other")).state.selected_method_id == "pm_amex"


def test_add_method_flow():
    state = _ready(methods=())

    assert transition(state, AddMethodRequested()).effects == (CollectPaymentMethod(),)
    assert transition(state, PaymentMethodCollected(added=True)).effects == (ReloadPaymentMethods(),)
    # Cancel is silent
    assert transition(state, PaymentMethodCollected(added=False)).effects == ()

    reloaded = transition(state, PaymentMethodsReloaded((VISA,))).state
    assert reloaded.stage is Stage.READY_TO_PAY
    assert reloaded.selected_method_id == "pm_visa"


def test_charge_success_requests_activation_with_lowercase_name():
    result = transition(_processing(), ChargeSucceeded({"id": "pi_1"}))

    assert result.state.stage is Stage.PROCESSING
    assert result.effects == (Activate(user_id="user-1", location_id=5, membership_type="ultimate"),)


def test_activation_success():
    result = transition(_processing(), ActivationSucceeded())

    assert result.state.stage is Stage.SUCCEEDED
    assert result.effects[0].title == SUCCESS_TITLE
    assert result.effects[1] == NotifySuccess()


def test_activation_failure_is_partial_success():
    result = transition(_processing(), ActivationFailed("500"))

    assert result.state.stage is Stage.SUCCEEDED
    assert result.state.partial_success is True
    assert result.effects[0].title == PARTIAL_SUCCESS_TITLE
    assert NotifySuccess() in result.effects
    assert not any(isinstance(e, Charge) for e in result.effects)

    # Succeeded is terminal: no second charge
    assert transition(result.state, PayPressed("again")).effects == ()


def test_charge_failure_shows_message_and_allows_retry():
    failed = transition(_processing(), ChargeFailed("Your card was declined.")).state

    assert failed.stage is Stage.FAILED
    assert failed.last_error == "Your card was declined."

    retry = transition(failed, PayPressed("key-2"))
    assert retry.state.stage is Stage.PROCESSING
    assert retry.state.charge_attempts == 2
    assert retry.effects[0].idempotency_key == "key-2"


def test_token_unavailable_fails_charge():
    result = transition(_processing(), TokenUnavailable("Please sign in again."))

    assert result.state.stage is Stage.FAILED
    assert result.effects[0].message == "Please sign in again."


def test_results_ignored_outside_processing():
    state = _ready()

    assert transition(state, ChargeSucceeded()).state is state
    assert transition(state, ActivationFailed()).state is state


def test_activation_without_response_fails_and_stays_payable():
    result = transition(_processing(), ActivationUnreachable("Could not reach the payment service."))

    assert result.state.stage is Stage.FAILED
    assert result.state.partial_success is False
    assert result.state.last_error == "Could not reach the payment service."
    assert result.effects == (
        ShowAlert(PAYMENT_FAILED_TITLE, "Could not reach the payment service."),
    )
    assert result.state.can_pay
