"""Charges and refunds against stored sources."""

from typing import Any, Sequence

import stripe
import structlog

from stripe_plus_gateway import messages
from stripe_plus_gateway.domain.amounts import to_minor_units
from stripe_plus_gateway.domain.descriptor import InvoiceLookup, build_statement_descriptor
from stripe_plus_gateway.models import (
    ErrorKind,
    InvoiceAmount,
    TransactionResult,
    TransactionStatus,
)
from stripe_plus_gateway.processors.errors import ErrorClassifier, error_body
from stripe_plus_gateway.processors.request_log import RedactingLogger
from stripe_plus_gateway.processors.stripe_api import StripeApi

logger = structlog.get_logger(__name__)

# Transaction id reported when Stripe doesn't return a failed charge id
INVALID_TRANSACTION_ID = "invalid"


class TransactionProcessor:
    """
    Executes charges and refunds.

    Results are always returned in-band as a TransactionResult; callers
    check `status` rather than catching exceptions.
    """

    def __init__(
        self,
        api: StripeApi,
        classifier: ErrorClassifier,
        request_log: RedactingLogger,
        invoice_lookup: InvoiceLookup | None = None,
    ) -> None:
        self.api = api
        self.classifier = classifier
        self.request_log = request_log
        self.invoice_lookup = invoice_lookup

    def charge(
        self,
        client_reference_id: str,
        source_id: str,
        amount: Any,
        currency: str,
        invoice_amounts: Sequence[InvoiceAmount] | None = None,
    ) -> TransactionResult:
        """
        Charge a stored source.

        Returns:
            TransactionResult with APPROVED or DECLINED status
        """
        path = "charges"
        description = build_statement_descriptor(invoice_amounts, self.invoice_lookup)
        request = {
            "amount": to_minor_units(amount, currency),
            "currency": currency.lower(),
            "customer": client_reference_id,
            "source": source_id,
            "statement_descriptor": description,
            "description": description,
        }

        try:
            charge = self.api.create_charge(request)
        except stripe.StripeError as e:
            error = self.classifier.handle(e, surface=False)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )

            body = error_body(e) or {}
            result = TransactionResult(
                status=TransactionStatus.DECLINED,
                transaction_id=body.get("charge") or INVALID_TRANSACTION_ID,
                message=body.get("message") or messages.CARD_DECLINED,
            )
            logger.info(
                "stripe_charge_declined",
                stripe_id=client_reference_id,
                transaction_id=result.transaction_id,
                error_kind=error.kind.value,
                code=body.get("code"),
            )
            return result

        self.request_log.log_call(path, request, charge)
        logger.info(
            "stripe_charge_approved",
            stripe_id=client_reference_id,
            transaction_id=charge.get("id"),
            amount=request["amount"],
            currency=request["currency"],
        )
        return TransactionResult(
            status=TransactionStatus.APPROVED,
            transaction_id=charge.get("id"),
            reference_id=charge.get("balance_transaction"),
        )

    def refund(
        self,
        transaction_id: str,
        currency: str,
        amount: Any = None,
    ) -> TransactionResult:
        """
        Refund a charge, in full when `amount` is None (a void).

        Returns:
            TransactionResult with VOID, REFUNDED or ERROR status
        """
        path = "refunds"
        request: dict[str, Any] = {"charge": transaction_id}
        if amount is not None:
            request["amount"] = to_minor_units(amount, currency)

        try:
            refund = self.api.create_refund(request)
        except stripe.StripeError as e:
            error = self.classifier.handle(e)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )
            message = messages.REFUND_FAILED
            if error.field is None and error.kind is not ErrorKind.GENERAL and error.message:
                message = error.message
            return TransactionResult(status=TransactionStatus.ERROR, message=message)

        self.request_log.log_call(path, request, refund)
        status = TransactionStatus.VOID if amount is None else TransactionStatus.REFUNDED
        logger.info(
            "stripe_refund_created",
            charge_id=transaction_id,
            refund_id=refund.get("id"),
            status=status.value,
        )
        return TransactionResult(status=status, transaction_id=refund.get("id"))
