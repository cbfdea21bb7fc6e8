"""Statement descriptors for charges.

Stripe limits statement descriptors to 22 characters, so invoice codes are
collapsed into a generic label when they don't fit.
"""

from typing import Protocol, Sequence

from stripe_plus_gateway.models import InvoiceAmount

MAX_DESCRIPTOR_LENGTH = 22

CREDIT_DESCRIPTOR = "Payment Credit"
SINGLE_INVOICE_FALLBACK = "Invoice payment"
MULTI_INVOICE_FALLBACK = "Multi-invoice payment"


class InvoiceLookup(Protocol):
    """Looks up the display code for a host invoice."""

    def get_id_code(self, invoice_id: str) -> str | None:
        ...


class NullInvoiceLookup:
    """Lookup used when the host provides none; raw invoice ids are shown."""

    def get_id_code(self, invoice_id: str) -> str | None:
        return None


class DictInvoiceLookup:
    """Lookup backed by an in-memory mapping of invoice id to id_code."""

    def __init__(self, codes: dict[str, str]):
        self.codes = {str(key): value for key, value in codes.items()}

    def get_id_code(self, invoice_id: str) -> str | None:
        return self.codes.get(str(invoice_id))


def _invoice_code(lookup: InvoiceLookup, invoice: InvoiceAmount) -> str:
    code = lookup.get_id_code(invoice.invoice_id)
    return code if code else invoice.invoice_id


def build_statement_descriptor(
    invoice_amounts: Sequence[InvoiceAmount] | None,
    lookup: InvoiceLookup | None = None,
) -> str:
    """
    Build the descriptor used for both statement_descriptor and description.

    No invoices means the payment is a credit deposit.
    """
    lookup = lookup or NullInvoiceLookup()
    invoices = list(invoice_amounts or [])

    if not invoices:
        return CREDIT_DESCRIPTOR

    if len(invoices) == 1:
        descriptor = f"Invoice {_invoice_code(lookup, invoices[0])}"
        if len(descriptor) > MAX_DESCRIPTOR_LENGTH:
            return SINGLE_INVOICE_FALLBACK
        return descriptor

    codes = [_invoice_code(lookup, invoice) for invoice in invoices]
    descriptor = "Invoices " + ", ".join(codes)
    if len(descriptor) > MAX_DESCRIPTOR_LENGTH:
        return MULTI_INVOICE_FALLBACK
    return descriptor
