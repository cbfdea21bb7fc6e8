"""Helpers that shape payment sources for Stripe and for the host."""

from stripe_plus_gateway.models import (
    AchInfo,
    CardInfo,
    PaymentSource,
    StoredAccount,
)

DEFAULT_CARD_TYPE = "visa"

CARD_BRANDS = {
    "visa": "visa",
    "american express": "amex",
    "mastercard": "mc",
    "discover": "disc",
    "jcb": "jcb",
    "diners club": "dc-cb",
}

# Host account type that maps to a Stripe company account holder
BUSINESS_ACCOUNT_TYPE = "business_checking"


def normalize_brand(brand: str | None) -> str:
    """Map a Stripe card brand onto the host's card type code."""
    if not brand:
        return DEFAULT_CARD_TYPE
    return CARD_BRANDS.get(brand.strip().lower(), DEFAULT_CARD_TYPE)


def format_expiration(exp_year: int | str | None, exp_month: int | str | None) -> str | None:
    """Return the expiration as yyyymm, or None when the source has none."""
    if not exp_year or not exp_month:
        return None
    return f"{exp_year}{str(exp_month).zfill(2)[-2:]}"


def holder_name(first_name: str | None, last_name: str | None, default: str = "") -> str:
    """Combine first and last name; fall back to `default` when both are empty."""
    name = first_name or ""
    if last_name:
        name = f"{name} {last_name}"
    return name if name else default


def account_holder_type(account_type: str | None) -> str:
    return "company" if account_type == BUSINESS_ACCOUNT_TYPE else "individual"


def card_source_request(card: CardInfo) -> dict:
    """
    Build the source-create request for a card.

    A merchant token short-circuits the raw fields entirely.
    """
    if card.merchant_token:
        return {"source": card.merchant_token}

    return {
        "source": {
            "object": "card",
            "number": card.card_number,
            "exp_month": card.exp_month,
            "exp_year": card.exp_year,
            "cvc": card.card_security_code,
            "name": holder_name(card.first_name, card.last_name),
            "address_line1": card.address1,
            "address_line2": card.address2,
            "address_zip": card.zip,
            "address_state": card.state.code,
            "address_country": card.country.alpha3,
        }
    }


def bank_source_request(account: AchInfo, currency: str | None) -> dict:
    """Build the source-create request for a bank account."""
    return {
        "source": {
            "object": "bank_account",
            "account_number": account.account_number,
            "routing_number": account.routing_number,
            "account_holder_name": holder_name(account.first_name, account.last_name),
            "account_holder_type": account_holder_type(account.type),
            "currency": currency.lower() if currency else None,
            "country": account.country.alpha2,
        }
    }


def card_update_fields(card: CardInfo, source: PaymentSource) -> dict:
    """
    Merge host-supplied card fields over an existing source.

    Only expiry, holder name and billing address can change on a stored card;
    any field the host leaves empty keeps the source's current value.
    """
    fields = {
        "exp_month": card.exp_month or source.exp_month,
        "exp_year": card.exp_year or source.exp_year,
        "name": holder_name(card.first_name, card.last_name, default=source.name or ""),
        "address_line1": card.address1 or source.address_line1,
        "address_line2": card.address2 or source.address_line2,
        "address_zip": card.zip or source.address_zip,
        "address_state": card.state.code or source.address_state,
        "address_country": card.country.alpha3 or source.address_country,
    }
    return {key: value for key, value in fields.items() if value not in (None, "")}


def to_stored_account(client_reference_id: str, source: PaymentSource) -> StoredAccount:
    return StoredAccount(
        client_reference_id=client_reference_id,
        reference_id=source.id,
        last4=source.last4,
        type=normalize_brand(source.brand),
        expiration=format_expiration(source.exp_year, source.exp_month),
    )
