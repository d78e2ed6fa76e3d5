"""
Membership checkout feature.

The state machine is pure; the orchestrator runs its effects against the
payments backend.
"""

from .orchestrator import CheckoutOrchestrator, CheckoutPresenter  # noqa: F401
from .state_machine import CheckoutContext, CheckoutState, Stage, transition  # noqa: F401
