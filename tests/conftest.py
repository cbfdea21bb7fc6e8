"""Pytest configuration and shared fixtures for all tests.

This module provides shared test fixtures including:
- In-memory SQLite database with the gateway tables
- Stripe API boundary, error classifier and request logger wired together
- Sample host records (contacts, cards, bank accounts) and Stripe payloads
"""

import json
from typing import Any, Generator

import pytest
import stripe
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from stripe_plus_gateway.config import STRIPE_API_BASE
from stripe_plus_gateway.infrastructure.database import create_db_engine, init_db
from stripe_plus_gateway.infrastructure.repository import CustomerMappingRepository
from stripe_plus_gateway.processors.errors import ErrorClassifier, ErrorCollector
from stripe_plus_gateway.processors.request_log import RedactingLogger
from stripe_plus_gateway.processors.stripe_api import StripeApi


class RecordingSink:
    """Gateway log sink that keeps decoded entries in memory."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    def write(self, url: str, direction: str, data: str, success: bool) -> None:
        self.entries.append(
            {
                "url": url,
                "direction": direction,
                "data": json.loads(data),
                "success": success,
            }
        )


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Create an in-memory database with all gateway tables."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    """Create a database session for a test."""
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def mappings(db_session: Session) -> CustomerMappingRepository:
    return CustomerMappingRepository(db_session)


@pytest.fixture
def stripe_api() -> StripeApi:
    """Create a StripeApi instance for testing."""
    return StripeApi(api_key="sk_test_fake_key")


@pytest.fixture
def collector() -> ErrorCollector:
    return ErrorCollector()


@pytest.fixture
def classifier(collector: ErrorCollector) -> ErrorClassifier:
    return ErrorClassifier(collector)


@pytest.fixture
def log_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def request_log(log_sink: RecordingSink) -> RedactingLogger:
    return RedactingLogger(STRIPE_API_BASE, [log_sink])


@pytest.fixture
def contact() -> dict[str, Any]:
    """Host billing contact."""
    return {
        "id": 7,
        "client_id": 3,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
    }


@pytest.fixture
def card_info() -> dict[str, Any]:
    """Host card details for a raw (untokenized) card."""
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "card_number": "4242424242424242",
        "card_exp": "202712",
        "card_security_code": "123",
        "address1": "12 St James's Square",
        "address2": "Suite 4",
        "city": "London",
        "zip": "SW1Y 4JH",
        "state": {"code": "LND", "name": "London"},
        "country": {"alpha2": "GB", "alpha3": "GBR", "name": "United Kingdom"},
    }


@pytest.fixture
def ach_info() -> dict[str, Any]:
    """Host bank account details."""
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "account_number": "000123456789",
        "routing_number": "110000000",
        "type": "business_checking",
        "country": {"alpha2": "US", "alpha3": "USA"},
    }


@pytest.fixture
def stripe_customer() -> dict[str, Any]:
    """Stripe customer payload."""
    return {
        "id": "cus_test123",
        "object": "customer",
        "email": "ada@example.com",
        "metadata": {"blesta_contact_id": 7},
        "sources": {"object": "list", "data": []},
    }


@pytest.fixture
def stripe_card() -> dict[str, Any]:
    """Stripe card source payload."""
    return {
        "id": "card_test123",
        "object": "card",
        "brand": "Visa",
        "last4": "4242",
        "exp_month": 12,
        "exp_year": 2027,
        "name": "Ada Lovelace",
        "address_line1": "12 St James's Square",
        "address_line2": "Suite 4",
        "address_zip": "SW1Y 4JH",
        "address_state": "LND",
        "address_country": "GBR",
        "customer": "cus_test123",
    }


@pytest.fixture
def gateway_meta() -> dict[str, str]:
    """Valid gateway meta selecting the test key."""
    return {
        "live_api_key": "sk_live_fake_key",
        "test_api_key": "sk_test_fake_key",
        "environment": "test_api_key",
    }


@pytest.fixture
def stripe_error():
    """
    Factory for Stripe SDK exceptions carrying a JSON error body.

    Usage:
        stripe_error(stripe.CardError, "card_error", "Declined", 402, code="card_declined")
    """

    def make(
        error_cls: type[stripe.StripeError],
        error_type: str,
        message: str,
        http_status: int,
        param: str | None = None,
        code: str | None = None,
        charge: str | None = None,
    ) -> stripe.StripeError:
        body: dict[str, Any] = {"type": error_type, "message": message}
        if param is not None:
            body["param"] = param
        if code is not None:
            body["code"] = code
        if charge is not None:
            body["charge"] = charge
        json_body = {"error": body}

        if error_cls is stripe.CardError:
            return stripe.CardError(
                message, param, code, http_status=http_status, json_body=json_body
            )
        if error_cls is stripe.InvalidRequestError:
            return stripe.InvalidRequestError(
                message, param, code=code, http_status=http_status, json_body=json_body
            )
        return error_cls(message, http_status=http_status, json_body=json_body)

    return make
