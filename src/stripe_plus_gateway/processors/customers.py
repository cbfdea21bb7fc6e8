"""Resolution of local contacts to Stripe customers.

A contact's Stripe customer is created lazily the first time it is needed
and remembered in the mapping table. On every call the mapped customer is
re-fetched from Stripe:

- deleted in Stripe: reported to the host, mapping kept (manual deletion
  is terminal, not auto-healed)
- gone (404): the stale mapping is removed and a new customer is created
- any other failure: classified and reported
"""

import stripe
import structlog
from sqlalchemy.exc import SQLAlchemyError

from stripe_plus_gateway.infrastructure.repository import CustomerMappingRepository
from stripe_plus_gateway.models import Contact, RemoteCustomer
from stripe_plus_gateway.processors.errors import (
    ErrorClassifier,
    customer_deleted_error,
    database_error,
)
from stripe_plus_gateway.processors.request_log import RedactingLogger
from stripe_plus_gateway.processors.stripe_api import StripeApi

logger = structlog.get_logger(__name__)

CUSTOMER_DESCRIPTION = "Blesta customer contact: {contact_id}"


class CustomerResolver:
    """Finds or creates the Stripe customer for a local contact."""

    def __init__(
        self,
        api: StripeApi,
        mappings: CustomerMappingRepository,
        classifier: ErrorClassifier,
        request_log: RedactingLogger,
    ) -> None:
        self.api = api
        self.mappings = mappings
        self.classifier = classifier
        self.request_log = request_log

    def resolve(self, contact: Contact) -> RemoteCustomer | None:
        """
        Return a usable Stripe customer for `contact`, or None on failure.

        Failures are already reported to the host's error collector when
        None is returned.
        """
        try:
            stripe_id = self.mappings.get_by_contact(contact.id)
        except SQLAlchemyError as e:
            logger.error("customer_mapping_lookup_failed", contact_id=contact.id, error=str(e))
            self.classifier.report(database_error(e))
            return None

        if stripe_id is None:
            return self.create(contact)

        path = f"customers/{stripe_id}"
        try:
            data = self.api.retrieve_customer(stripe_id)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                logger.info(
                    "stripe_customer_missing",
                    contact_id=contact.id,
                    stripe_id=stripe_id,
                )
                return self._replace_missing(contact, path, e)
            self._fail(path, e)
            return None
        except stripe.StripeError as e:
            self._fail(path, e)
            return None

        self.request_log.log_call(path, {}, data)
        customer = RemoteCustomer.from_stripe(data)

        if customer.deleted:
            logger.warning(
                "stripe_customer_deleted",
                contact_id=contact.id,
                stripe_id=stripe_id,
            )
            self.classifier.report(customer_deleted_error())
            return None

        return customer

    def create(self, contact: Contact) -> RemoteCustomer | None:
        """Create a Stripe customer for `contact` and persist the mapping."""
        path = "customers"
        request = {
            "email": contact.email,
            "description": CUSTOMER_DESCRIPTION.format(contact_id=contact.id),
            "metadata": {"blesta_contact_id": contact.id},
        }

        try:
            data = self.api.create_customer(request)
        except stripe.StripeError as e:
            error = self.classifier.handle(e)
            self.request_log.log_call(
                path, request, self.classifier.log_payload(e, error), is_error=True
            )
            return None

        self.request_log.log_call(path, request, data)
        customer = RemoteCustomer.from_stripe(data)

        try:
            self.mappings.create(contact.id, customer.id)
        except SQLAlchemyError as e:
            # The Stripe customer is left orphaned; the next call creates another
            logger.error(
                "customer_mapping_create_failed",
                contact_id=contact.id,
                stripe_id=customer.id,
                error=str(e),
            )
            error = self.classifier.report(database_error(e))
            self.request_log.log_call(
                path, request, {error.host_key: error.as_record()}, is_error=True
            )
            return None

        logger.info("stripe_customer_created", contact_id=contact.id, stripe_id=customer.id)
        return customer

    def _replace_missing(
        self, contact: Contact, path: str, exc: stripe.InvalidRequestError
    ) -> RemoteCustomer | None:
        self.request_log.log_call(path, {}, exc.json_body or {}, is_error=True)
        try:
            self.mappings.delete_by_contact(contact.id)
        except SQLAlchemyError as e:
            logger.error("customer_mapping_delete_failed", contact_id=contact.id, error=str(e))
            self.classifier.report(database_error(e))
            return None
        return self.create(contact)

    def _fail(self, path: str, exc: stripe.StripeError) -> None:
        error = self.classifier.handle(exc)
        self.request_log.log_call(
            path, {}, self.classifier.log_payload(exc, error), is_error=True
        )
