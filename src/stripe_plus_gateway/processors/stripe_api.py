"""
Thin boundary over the Stripe SDK.

Every call passes the configured API key explicitly instead of mutating
`stripe.api_key`, and every response is converted to plain dicts so the
rest of the gateway never holds SDK objects.

Reference: https://docs.stripe.com/api
"""

from collections.abc import Mapping
from typing import Any

import stripe
import structlog

from stripe_plus_gateway.config import STRIPE_API_BASE

logger = structlog.get_logger(__name__)


def to_plain(value: Any) -> Any:
    """
    Recursively convert Stripe objects into plain dicts and lists.

    Newer SDK releases no longer make StripeObject a dict, so it is unwrapped
    through `to_dict()` before the generic mapping branch.
    """
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


class StripeApi:
    """
    Stripe resources used by the gateway: customers, sources, charges, refunds.

    SDK exceptions (stripe.StripeError subclasses) propagate to the caller.
    """

    def __init__(self, api_key: str, base_url: str = STRIPE_API_BASE) -> None:
        """
        Args:
            api_key: Stripe secret API key (sk_test_... or sk_live_...)
            base_url: Stripe API base URL, used to label logged requests
        """
        self.api_key = api_key
        self.base_url = base_url

    def create_customer(self, params: dict[str, Any]) -> dict[str, Any]:
        customer = stripe.Customer.create(api_key=self.api_key, **params)
        return to_plain(customer)

    def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        customer = stripe.Customer.retrieve(customer_id, api_key=self.api_key)
        return to_plain(customer)

    def create_source(self, customer_id: str, params: dict[str, Any]) -> dict[str, Any]:
        source = stripe.Customer.create_source(customer_id, api_key=self.api_key, **params)
        return to_plain(source)

    def retrieve_source(self, customer_id: str, source_id: str) -> dict[str, Any]:
        source = stripe.Customer.retrieve_source(customer_id, source_id, api_key=self.api_key)
        return to_plain(source)

    def modify_source(
        self, customer_id: str, source_id: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        source = stripe.Customer.modify_source(
            customer_id, source_id, api_key=self.api_key, **params
        )
        return to_plain(source)

    def delete_source(self, customer_id: str, source_id: str) -> dict[str, Any]:
        deleted = stripe.Customer.delete_source(customer_id, source_id, api_key=self.api_key)
        return to_plain(deleted)

    def create_charge(self, params: dict[str, Any]) -> dict[str, Any]:
        charge = stripe.Charge.create(api_key=self.api_key, **params)
        return to_plain(charge)

    def create_refund(self, params: dict[str, Any]) -> dict[str, Any]:
        refund = stripe.Refund.create(api_key=self.api_key, **params)
        return to_plain(refund)
