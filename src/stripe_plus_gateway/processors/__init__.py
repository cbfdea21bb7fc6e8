"""
Stripe-facing components of the gateway.

- stripe_api.StripeApi: remote-call boundary over the Stripe SDK
- errors.ErrorClassifier: maps Stripe failures onto NormalizedError
- request_log.RedactingLogger: masked request/response logging
- customers.CustomerResolver: contact to Stripe customer resolution
- sources.SourceManager: card and bank account sources
- transactions.TransactionProcessor: charges and refunds
"""

from stripe_plus_gateway.processors.customers import CustomerResolver
from stripe_plus_gateway.processors.errors import ErrorClassifier, ErrorCollector
from stripe_plus_gateway.processors.request_log import (
    DatabaseSink,
    RedactingLogger,
    StructlogSink,
)
from stripe_plus_gateway.processors.sources import SourceManager
from stripe_plus_gateway.processors.stripe_api import StripeApi
from stripe_plus_gateway.processors.transactions import TransactionProcessor

__all__ = [
    "CustomerResolver",
    "DatabaseSink",
    "ErrorClassifier",
    "ErrorCollector",
    "RedactingLogger",
    "SourceManager",
    "StripeApi",
    "StructlogSink",
    "TransactionProcessor",
]
