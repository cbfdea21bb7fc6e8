"""Payment source management on Stripe customers."""

from typing import Any

import stripe
import structlog

from stripe_plus_gateway.domain.sources import card_update_fields, to_stored_account
from stripe_plus_gateway.models import CardInfo, PaymentSource, RemoteCustomer, StoredAccount
from stripe_plus_gateway.processors.errors import ErrorClassifier
from stripe_plus_gateway.processors.request_log import RedactingLogger
from stripe_plus_gateway.processors.stripe_api import StripeApi

logger = structlog.get_logger(__name__)


class SourceManager:
    """
    Creates, updates and removes cards and bank accounts on a customer.

    Store and update return None on failure after reporting the classified
    error; nothing is raised to the caller for Stripe failures.
    """

    def __init__(
        self,
        api: StripeApi,
        classifier: ErrorClassifier,
        request_log: RedactingLogger,
    ) -> None:
        self.api = api
        self.classifier = classifier
        self.request_log = request_log

    def store_source(
        self, customer: RemoteCustomer, request: dict[str, Any]
    ) -> StoredAccount | None:
        """
        Attach a source to `customer`.

        Args:
            customer: Resolved Stripe customer
            request: Either {"source": token} or {"source": {...raw fields...}}
        """
        path = f"customers/{customer.id}/sources"
        try:
            data = self.api.create_source(customer.id, request)
        except stripe.StripeError as e:
            error = self.classifier.handle(e)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )
            return None

        self.request_log.log_call(path, request, data)
        source = PaymentSource.from_stripe(data)

        logger.info(
            "stripe_source_stored",
            stripe_id=customer.id,
            source_id=source.id,
            source_object=source.object,
        )
        return to_stored_account(customer.id, source)

    def update_source(
        self, customer: RemoteCustomer, source_id: str, card: CardInfo
    ) -> StoredAccount | None:
        """Overwrite the supplied card fields on an existing source."""
        path = f"customers/{customer.id}/sources/{source_id}"
        request: dict[str, Any] = {}
        try:
            existing = PaymentSource.from_stripe(
                self.api.retrieve_source(customer.id, source_id)
            )
            request = card_update_fields(card, existing)
            data = self.api.modify_source(customer.id, source_id, request)
        except stripe.StripeError as e:
            error = self.classifier.handle(e)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )
            return None

        self.request_log.log_call(path, request, data)
        source = PaymentSource.from_stripe(data)

        logger.info("stripe_source_updated", stripe_id=customer.id, source_id=source.id)
        return to_stored_account(customer.id, source)

    def remove_source(self, client_reference_id: str, source_id: str) -> dict[str, str]:
        """
        Delete a source from a customer.

        The customer is fetched directly by reference, not through the
        mapping table. The reference pair is returned whether or not Stripe
        accepted the delete; failures only appear in the log.
        """
        path = f"customers/{client_reference_id}/sources/{source_id}"
        request: dict[str, Any] = {}
        try:
            self.api.retrieve_customer(client_reference_id)
            source = self.api.retrieve_source(client_reference_id, source_id)
            data = self.api.delete_source(client_reference_id, source["id"])
            self.request_log.log_call(path, request, data)
            logger.info(
                "stripe_source_removed",
                stripe_id=client_reference_id,
                source_id=source_id,
            )
        except stripe.StripeError as e:
            error = self.classifier.handle(e, surface=False)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )

        return {
            "client_reference_id": client_reference_id,
            "reference_id": source_id,
        }
