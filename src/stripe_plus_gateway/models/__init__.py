"""Domain models for the Stripe Plus gateway."""

from stripe_plus_gateway.models.exceptions import GatewayConfigError, GatewayError
from stripe_plus_gateway.models.gateway import (
    AchInfo,
    CardInfo,
    Contact,
    ErrorKind,
    InvoiceAmount,
    NormalizedError,
    PaymentSource,
    Region,
    RemoteCustomer,
    StoredAccount,
    TransactionResult,
    TransactionStatus,
)

__all__ = [
    "AchInfo",
    "CardInfo",
    "Contact",
    "ErrorKind",
    "GatewayConfigError",
    "GatewayError",
    "InvoiceAmount",
    "NormalizedError",
    "PaymentSource",
    "Region",
    "RemoteCustomer",
    "StoredAccount",
    "TransactionResult",
    "TransactionStatus",
]
