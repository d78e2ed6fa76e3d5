from pickleclub.services.payments.card_collection import (
    CardCollectionResult,
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
    UserCancelled,
)
from pickleclub.services.payments.gateway import PaymentGatewayClient

__all__ = [
    "BackendUnavailable",
    "BackendUnreachable",
    "CardCollectionResult",
    "CardCollectionStatus",
    "CardCollector",
    "CardSheetConfig",
    "NoAuthToken",
    "PaymentConfigurationError",
    "PaymentGatewayClient",
    "PaymentGatewayError",
    "ProcessorRejected",
    "UserCancelled",
]
