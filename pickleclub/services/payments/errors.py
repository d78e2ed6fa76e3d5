"""
Failure taxonomy for the payments backend.

NoAuthToken        session missing/expired, user must sign in again
BackendUnavailable non-2xx / non-JSON response
BackendUnreachable no response at all (connection, DNS, timeout)
UserCancelled      user dismissed the hosted card sheet (not an error)
ProcessorRejected  the processor declined, message shown verbatim
"""


class PaymentGatewayError(Exception):
    """Base class; str(error) is safe to show to the member."""

    def __init__(self, message: str, status_code: int | None = None, operation: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation


class NoAuthToken(PaymentGatewayError):
    def __init__(self, message: str = "No authentication token available. Please sign in again."):
        super().__init__(message)


class BackendUnavailable(PaymentGatewayError):
    pass


class BackendUnreachable(BackendUnavailable):
    """The request never got a response (connection refused, DNS, timeout)."""


class PaymentConfigurationError(BackendUnavailable):
    """Backend is misconfigured for card-only, redirect-free payments."""


class UserCancelled(PaymentGatewayError):
    def __init__(self, message: str = "Cancelled by user"):
        super().__init__(message)


class ProcessorRejected(PaymentGatewayError):
    pass


# Names used by the checkout flow's error handling
AuthMissing = NoAuthToken
TransientBackendError = BackendUnavailable
ProcessorDeclined = ProcessorRejected
