"""
Stripe Plus merchant gateway.

Offsite storage of credit cards and ACH bank accounts with Stripe, exposed
through the billing host's merchant gateway contract. Cards and bank
accounts live in Stripe as sources on a per-contact customer; the host only
keeps the returned reference ids.

Return conventions follow the host:
- store/update return the stored account dict, or None on failure with the
  reason available from `errors()`
- remove always returns the reference pair
- process/void/refund return a transaction dict whose `status` carries the
  outcome
- unsupported operations return None and set an "unsupported" error

Reference: https://docs.stripe.com/api
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Iterable, Sequence

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stripe_plus_gateway.config import ENCRYPTABLE_FIELDS, load_meta, validate_meta
from stripe_plus_gateway.domain.descriptor import InvoiceLookup
from stripe_plus_gateway.domain.sources import bank_source_request, card_source_request
from stripe_plus_gateway.infrastructure import database
from stripe_plus_gateway.infrastructure.models import CustomerMapping, GatewayLog
from stripe_plus_gateway.infrastructure.repository import CustomerMappingRepository
from stripe_plus_gateway.models import (
    AchInfo,
    CardInfo,
    Contact,
    InvoiceAmount,
)
from stripe_plus_gateway.processors.customers import CustomerResolver
from stripe_plus_gateway.processors.errors import (
    ErrorClassifier,
    ErrorCollector,
    database_error,
    unsupported_error,
)
from stripe_plus_gateway.processors.request_log import (
    DatabaseSink,
    GatewayLogSink,
    RedactingLogger,
    StructlogSink,
)
from stripe_plus_gateway.processors.sources import SourceManager
from stripe_plus_gateway.processors.stripe_api import StripeApi
from stripe_plus_gateway.processors.transactions import TransactionProcessor

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "USD"


@dataclass
class _Components:
    resolver: CustomerResolver
    sources: SourceManager
    transactions: TransactionProcessor


class StripePlusGateway:
    """Merchant gateway with offsite credit card and ACH storage."""

    def __init__(
        self,
        meta: dict[str, Any] | None = None,
        engine: Engine | None = None,
        invoice_lookup: InvoiceLookup | None = None,
        persist_logs: bool = True,
        log_sinks: Iterable[GatewayLogSink] | None = None,
    ) -> None:
        """
        Args:
            meta: Gateway meta (live_api_key, test_api_key, environment); when
                None, the keys are read from the STRIPE__* settings
            engine: Database holding the contact mapping table; defaults to
                the engine configured from settings
            invoice_lookup: Resolves invoice ids to display codes for
                statement descriptors
            persist_logs: Also write masked request logs to `gateway_logs`
            log_sinks: Extra sinks for masked request logs
        """
        self.meta = meta
        self.currency = DEFAULT_CURRENCY
        self.engine = engine or database.engine
        self.session_factory = (
            sessionmaker(autocommit=False, autoflush=False, bind=engine)
            if engine is not None
            else database.SessionLocal
        )
        self.invoice_lookup = invoice_lookup
        self.persist_logs = persist_logs
        self.log_sinks = list(log_sinks) if log_sinks is not None else [StructlogSink()]
        self.collector = ErrorCollector()
        self.classifier = ErrorClassifier(self.collector)

    # Host plumbing

    def set_currency(self, currency: str) -> None:
        """Set the ISO 4217 currency used for subsequent payments."""
        self.currency = currency

    def set_meta(self, meta: dict[str, Any] | None = None) -> None:
        self.meta = meta

    def encryptable_fields(self) -> tuple[str, ...]:
        """Meta fields the host must encrypt at rest."""
        return ENCRYPTABLE_FIELDS

    def requires_customer_present(self) -> bool:
        return False

    def requires_cc_storage(self) -> bool:
        return True

    def requires_ach_storage(self) -> bool:
        return True

    def errors(self) -> dict[str, dict[str, Any]]:
        """Errors raised by the last operation, keyed by error type."""
        return self.collector.errors()

    def edit_settings(self, meta: dict[str, Any]) -> dict[str, Any]:
        """
        Validate meta submitted from the settings form.

        The meta is returned unchanged; validation failures are available
        from `errors()`.
        """
        self.collector.clear()
        errors = validate_meta(meta)
        if errors:
            self.collector.set_errors(errors)
        return meta

    def install(self) -> None:
        """Create the contact mapping and request log tables."""
        self.collector.clear()
        try:
            database.init_db(
                self.engine, tables=[CustomerMapping.__table__, GatewayLog.__table__]
            )
        except SQLAlchemyError as e:
            logger.error("gateway_install_failed", error=str(e))
            self.classifier.report(database_error(e))
            return
        logger.info("gateway_installed")

    def uninstall(self, gateway_id: int | None, last_instance: bool) -> None:
        """
        Uninstall a gateway instance.

        Removing the last instance drops the mapping and request log tables,
        losing every link between contacts and Stripe customers.
        """
        if not last_instance:
            return
        database.drop_tables(
            self.engine, tables=[CustomerMapping.__table__, GatewayLog.__table__]
        )
        logger.info("gateway_uninstalled", gateway_id=gateway_id)

    # Credit cards

    def store_cc(
        self,
        card_info: dict[str, Any],
        contact: dict[str, Any],
        client_reference_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Store a card with Stripe, by merchant token or raw card fields."""
        request = card_source_request(CardInfo.from_dict(card_info))
        return self._store_source(Contact.from_dict(contact), request)

    def update_cc(
        self,
        card_info: dict[str, Any],
        contact: dict[str, Any],
        client_reference_id: str | None,
        account_reference_id: str,
    ) -> dict[str, Any] | None:
        """Update expiry, holder name and billing address of a stored card."""
        self.collector.clear()
        with self._components() as components:
            customer = components.resolver.resolve(Contact.from_dict(contact))
            if customer is None:
                return None
            account = components.sources.update_source(
                customer, account_reference_id, CardInfo.from_dict(card_info)
            )
        return account.to_dict() if account else None

    def remove_cc(self, client_reference_id: str, account_reference_id: str) -> dict[str, str]:
        return self._remove_source(client_reference_id, account_reference_id)

    def process_stored_cc(
        self,
        client_reference_id: str,
        account_reference_id: str,
        amount: Any,
        invoice_amounts: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return self._charge(client_reference_id, account_reference_id, amount, invoice_amounts)

    def authorize_stored_cc(
        self,
        client_reference_id: str,
        account_reference_id: str,
        amount: Any,
        invoice_amounts: Sequence[dict[str, Any]] | None = None,
    ) -> None:
        """Not supported: stored cards are charged directly."""
        self._unsupported("authorize_stored_cc")

    def capture_stored_cc(
        self,
        client_reference_id: str,
        account_reference_id: str,
        transaction_reference_id: str,
        transaction_id: str,
        amount: Any,
        invoice_amounts: Sequence[dict[str, Any]] | None = None,
    ) -> None:
        """Not supported: stored cards are charged directly."""
        self._unsupported("capture_stored_cc")

    def void_stored_cc(
        self,
        client_reference_id: str,
        account_reference_id: str,
        transaction_reference_id: str | None,
        transaction_id: str,
    ) -> dict[str, Any]:
        return self._refund(transaction_id)

    def refund_stored_cc(
        self,
        client_reference_id: str,
        account_reference_id: str,
        transaction_reference_id: str | None,
        transaction_id: str,
        amount: Any,
    ) -> dict[str, Any]:
        return self._refund(transaction_id, amount)

    # ACH

    def store_ach(
        self,
        account_info: dict[str, Any],
        contact: dict[str, Any],
        client_reference_id: str | None = None,
    ) -> dict[str, Any] | None:
        request = bank_source_request(AchInfo.from_dict(account_info), self.currency)
        return self._store_source(Contact.from_dict(contact), request)

    def update_ach(
        self,
        account_info: dict[str, Any],
        contact: dict[str, Any],
        client_reference_id: str | None,
        account_reference_id: str,
    ) -> None:
        """Not supported: Stripe bank accounts can't be edited, only replaced."""
        self._unsupported("update_ach")

    def remove_ach(self, client_reference_id: str, account_reference_id: str) -> dict[str, str]:
        return self._remove_source(client_reference_id, account_reference_id)

    def process_stored_ach(
        self,
        client_reference_id: str,
        account_reference_id: str,
        amount: Any,
        invoice_amounts: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return self._charge(client_reference_id, account_reference_id, amount, invoice_amounts)

    def void_stored_ach(
        self,
        client_reference_id: str,
        account_reference_id: str,
        transaction_reference_id: str | None,
        transaction_id: str,
    ) -> dict[str, Any]:
        return self._refund(transaction_id)

    def refund_stored_ach(
        self,
        client_reference_id: str,
        account_reference_id: str,
        transaction_reference_id: str | None,
        transaction_id: str,
        amount: Any,
    ) -> dict[str, Any]:
        return self._refund(transaction_id, amount)

    # Shared flows

    def _store_source(
        self, contact: Contact, request: dict[str, Any]
    ) -> dict[str, Any] | None:
        self.collector.clear()
        with self._components() as components:
            customer = components.resolver.resolve(contact)
            if customer is None:
                return None
            account = components.sources.store_source(customer, request)
        return account.to_dict() if account else None

    def _remove_source(
        self, client_reference_id: str, account_reference_id: str
    ) -> dict[str, str]:
        self.collector.clear()
        with self._components() as components:
            return components.sources.remove_source(client_reference_id, account_reference_id)

    def _charge(
        self,
        client_reference_id: str,
        account_reference_id: str,
        amount: Any,
        invoice_amounts: Sequence[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        self.collector.clear()
        invoices = [InvoiceAmount.from_dict(item) for item in invoice_amounts or []]
        with self._components() as components:
            result = components.transactions.charge(
                client_reference_id,
                account_reference_id,
                amount,
                self.currency,
                invoices,
            )
        return result.to_dict()

    def _refund(self, transaction_id: str, amount: Any = None) -> dict[str, Any]:
        self.collector.clear()
        with self._components() as components:
            result = components.transactions.refund(transaction_id, self.currency, amount)
        return result.to_dict()

    def _unsupported(self, operation: str) -> None:
        self.collector.clear()
        logger.info("gateway_operation_unsupported", operation=operation)
        self.classifier.report(unsupported_error())

    @contextmanager
    def _components(self) -> Generator[_Components, None, None]:
        """
        Build per-call components around one database session.

        The session commits when the host call completes.
        """
        gateway_meta = load_meta(self.meta)
        api = StripeApi(api_key=gateway_meta.api_key, base_url=gateway_meta.base_url)

        with database.get_db_session(self.session_factory) as session:
            request_log = RedactingLogger(api.base_url, self._sinks(session))
            yield _Components(
                resolver=CustomerResolver(
                    api, CustomerMappingRepository(session), self.classifier, request_log
                ),
                sources=SourceManager(api, self.classifier, request_log),
                transactions=TransactionProcessor(
                    api, self.classifier, request_log, self.invoice_lookup
                ),
            )

    def _sinks(self, session: Session) -> list[GatewayLogSink]:
        sinks: list[GatewayLogSink] = list(self.log_sinks)
        if self.persist_logs:
            sinks.append(DatabaseSink(session))
        return sinks
