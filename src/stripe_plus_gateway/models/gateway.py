"""Domain models for the Stripe Plus gateway.

Host-facing records (contacts, card and bank account details, invoice
amounts) come in as plain dicts from the billing system and are converted
into these dataclasses at the facade. Stripe objects are converted into
RemoteCustomer / PaymentSource at the SDK boundary so nothing downstream
touches dynamic SDK objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TransactionStatus(str, Enum):
    """Transaction statuses understood by the billing host."""

    APPROVED = "approved"
    DECLINED = "declined"
    VOID = "void"
    PENDING = "pending"
    RECONCILED = "reconciled"
    REFUNDED = "refunded"
    RETURNED = "returned"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Normalized error taxonomy."""

    AUTH = "auth"
    INVALID_REQUEST = "invalid_request"
    API_CONNECTION = "api_connection"
    API = "api"
    RATE_LIMIT = "rate_limit"
    CARD = "card"
    GENERAL = "general"
    UNSUPPORTED = "unsupported"
    CUSTOMER_DELETED = "customer_deleted"
    DB = "db"


@dataclass(frozen=True)
class NormalizedError:
    """
    A classified failure.

    `error_type` is the key the host error layer groups errors under
    (the Stripe error type, or a local one such as "unsupported").
    `is_error` and `status_code` are internal bookkeeping; the error
    collector strips them before the host sees the record.
    """

    kind: ErrorKind
    message: str
    field: str | None = None
    error_type: str | None = None
    status_code: int | None = None
    is_error: bool = True

    @property
    def host_key(self) -> str:
        """Key the host error layer groups this error under."""
        return self.error_type or self.kind.value

    def as_record(self) -> dict[str, Any]:
        """
        Render the internal error record.

        The message is keyed by the rejected field when there is one.
        """
        return {
            "is_error": self.is_error,
            "status_code": self.status_code,
            self.field or "message": self.message,
        }


@dataclass(frozen=True)
class Region:
    """State or country entry as supplied by the host."""

    code: str | None = None
    alpha2: str | None = None
    alpha3: str | None = None
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Region":
        data = data or {}
        return cls(
            code=data.get("code"),
            alpha2=data.get("alpha2"),
            alpha3=data.get("alpha3"),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class Contact:
    """Billing contact a payment account is stored under."""

    id: int
    email: str | None = None
    client_id: int | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contact":
        return cls(
            id=int(data["id"]),
            email=data.get("email"),
            client_id=data.get("client_id"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )


@dataclass(frozen=True)
class CardInfo:
    """
    Card details supplied by the host for store/update.

    Attributes:
        card_exp: Expiration in yyyymm format
        merchant_token: Pre-tokenized card reference; when present the raw
            card fields are ignored on store
    """

    first_name: str | None = None
    last_name: str | None = None
    card_number: str | None = None
    card_exp: str | None = None
    card_security_code: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    zip: str | None = None
    state: Region = field(default_factory=Region)
    country: Region = field(default_factory=Region)
    merchant_token: str | None = None
    reference_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardInfo":
        return cls(
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            card_number=data.get("card_number"),
            card_exp=data.get("card_exp"),
            card_security_code=data.get("card_security_code"),
            address1=data.get("address1"),
            address2=data.get("address2"),
            city=data.get("city"),
            zip=data.get("zip"),
            state=Region.from_dict(data.get("state")),
            country=Region.from_dict(data.get("country")),
            merchant_token=data.get("merchant_token"),
            reference_id=data.get("reference_id"),
        )

    @property
    def exp_month(self) -> str | None:
        return self.card_exp[-2:] if self.card_exp else None

    @property
    def exp_year(self) -> str | None:
        return self.card_exp[:4] if self.card_exp else None


@dataclass(frozen=True)
class AchInfo:
    """Bank account details supplied by the host."""

    account_number: str
    routing_number: str
    type: str = "checking"
    first_name: str | None = None
    last_name: str | None = None
    country: Region = field(default_factory=Region)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AchInfo":
        return cls(
            account_number=data["account_number"],
            routing_number=data["routing_number"],
            type=data.get("type") or "checking",
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            country=Region.from_dict(data.get("country")),
        )


@dataclass(frozen=True)
class InvoiceAmount:
    """One invoice covered by a payment."""

    invoice_id: str
    amount: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InvoiceAmount":
        invoice_id = data.get("invoice_id", data.get("id"))
        return cls(invoice_id=str(invoice_id), amount=data.get("amount"))


@dataclass(frozen=True)
class PaymentSource:
    """A card or bank account attached to a Stripe customer."""

    id: str
    object: str = "card"
    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None
    name: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    address_zip: str | None = None
    address_state: str | None = None
    address_country: str | None = None
    bank_name: str | None = None
    routing_number: str | None = None

    @classmethod
    def from_stripe(cls, data: dict[str, Any]) -> "PaymentSource":
        return cls(
            id=data["id"],
            object=data.get("object") or "card",
            brand=data.get("brand"),
            last4=data.get("last4"),
            exp_month=data.get("exp_month"),
            exp_year=data.get("exp_year"),
            name=data.get("name") or data.get("account_holder_name"),
            address_line1=data.get("address_line1"),
            address_line2=data.get("address_line2"),
            address_zip=data.get("address_zip"),
            address_state=data.get("address_state"),
            address_country=data.get("address_country"),
            bank_name=data.get("bank_name"),
            routing_number=data.get("routing_number"),
        )


@dataclass(frozen=True)
class RemoteCustomer:
    """A Stripe customer, converted at the SDK boundary."""

    id: str
    deleted: bool = False
    email: str | None = None
    sources: tuple[PaymentSource, ...] = ()

    @classmethod
    def from_stripe(cls, data: dict[str, Any]) -> "RemoteCustomer":
        sources = data.get("sources") or {}
        return cls(
            id=data["id"],
            deleted=bool(data.get("deleted", False)),
            email=data.get("email"),
            sources=tuple(
                PaymentSource.from_stripe(item) for item in sources.get("data") or []
            ),
        )


@dataclass(frozen=True)
class StoredAccount:
    """Normalized payment account handed back to the host."""

    client_reference_id: str
    reference_id: str
    last4: str | None = None
    type: str | None = None
    expiration: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_reference_id": self.client_reference_id,
            "reference_id": self.reference_id,
            "last4": self.last4,
            "type": self.type,
            "expiration": self.expiration,
        }


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a charge, refund or void."""

    status: TransactionStatus
    transaction_id: str | None = None
    reference_id: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "reference_id": self.reference_id,
            "transaction_id": self.transaction_id,
            "message": self.message,
        }
