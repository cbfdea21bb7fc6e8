"""Classification of Stripe failures into the gateway's error taxonomy.

Stripe reports failures as an error body of the form
    {"error": {"type": ..., "message": ..., "param": ..., "code": ...}}
plus an HTTP status. The classifier reduces that to a NormalizedError and,
for validation-style flows, reports it to the host through an ErrorCollector.
"""

from typing import Any

import structlog

from stripe_plus_gateway import messages
from stripe_plus_gateway.models import ErrorKind, NormalizedError

logger = structlog.get_logger(__name__)

# Bookkeeping keys that let callers detect failure; never shown to the host
INTERNAL_ERROR_KEYS = ("is_error", "status_code")

PASSTHROUGH_TYPES = {
    "api_connection_error": ErrorKind.API_CONNECTION,
    "api_error": ErrorKind.API,
    "rate_limit_error": ErrorKind.RATE_LIMIT,
}


class ErrorCollector:
    """
    Validation-style error set surfaced to the billing host.

    Errors are grouped by type, each mapping a field (or "message") to a
    displayable message.
    """

    def __init__(self) -> None:
        self._errors: dict[str, dict[str, Any]] = {}

    def set_errors(self, errors: dict[str, dict[str, Any]]) -> None:
        """Replace the current errors, dropping internal bookkeeping keys."""
        cleaned: dict[str, dict[str, Any]] = {}
        for key, error in errors.items():
            cleaned[key] = {
                name: value
                for name, value in error.items()
                if name not in INTERNAL_ERROR_KEYS
            }
        self._errors = cleaned

    def report(self, error: NormalizedError) -> None:
        self.set_errors({error.host_key: error.as_record()})

    def clear(self) -> None:
        self._errors = {}

    def errors(self) -> dict[str, dict[str, Any]]:
        return {key: dict(value) for key, value in self._errors.items()}

    def __bool__(self) -> bool:
        return bool(self._errors)


def error_body(exc: BaseException) -> dict[str, Any] | None:
    """Return the structured Stripe error body carried by an exception, if any."""
    body = getattr(exc, "json_body", None)
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    return error if isinstance(error, dict) else None


def general_error() -> NormalizedError:
    return NormalizedError(
        kind=ErrorKind.GENERAL,
        message=messages.GENERAL_ERROR,
        error_type="general",
    )


def unsupported_error() -> NormalizedError:
    return NormalizedError(
        kind=ErrorKind.UNSUPPORTED,
        message=messages.UNSUPPORTED,
        error_type="unsupported",
    )


def customer_deleted_error() -> NormalizedError:
    return NormalizedError(
        kind=ErrorKind.CUSTOMER_DELETED,
        message=messages.CUSTOMER_DELETED,
        field="customer",
        error_type="invalid_request_error",
    )


def database_error(exc: BaseException) -> NormalizedError:
    return NormalizedError(
        kind=ErrorKind.DB,
        message=str(exc),
        field="create",
        error_type="db",
    )


class ErrorClassifier:
    """Turns Stripe exceptions into NormalizedErrors."""

    def __init__(self, collector: ErrorCollector | None = None):
        self.collector = collector if collector is not None else ErrorCollector()

    def classify(self, exc: BaseException) -> NormalizedError:
        """
        Classify a failed remote call.

        Authentication failures never carry Stripe's message since it may
        echo the (invalid) API key.
        """
        body = error_body(exc)
        if body is None:
            return general_error()

        error_type = body.get("type")
        message = body.get("message") or ""
        status_code = getattr(exc, "http_status", None)

        if error_type == "invalid_request_error":
            return NormalizedError(
                kind=ErrorKind.INVALID_REQUEST,
                message=message,
                field=body.get("param") or None,
                error_type=error_type,
                status_code=status_code,
            )

        if error_type == "authentication_error":
            return NormalizedError(
                kind=ErrorKind.AUTH,
                message=messages.AUTH_FAILED,
                error_type=error_type,
                status_code=status_code,
            )

        if error_type in PASSTHROUGH_TYPES:
            return NormalizedError(
                kind=PASSTHROUGH_TYPES[error_type],
                message=message,
                error_type=error_type,
                status_code=status_code,
            )

        if error_type == "card_error":
            return NormalizedError(
                kind=ErrorKind.CARD,
                message=message,
                field=body.get("code") or None,
                error_type=error_type,
                status_code=status_code,
            )

        return general_error()

    def handle(self, exc: BaseException, surface: bool = True) -> NormalizedError:
        """
        Classify `exc` and, when `surface` is set, report it to the host.

        Charge and refund flows pass surface=False and report the error
        in-band on their TransactionResult instead.
        """
        error = self.classify(exc)

        logger.warning(
            "stripe_request_failed",
            error_kind=error.kind.value,
            error_type=error.error_type,
            status_code=error.status_code,
            field=error.field,
            exc_type=type(exc).__name__,
        )

        if surface:
            self.collector.report(error)
        return error

    def report(self, error: NormalizedError) -> NormalizedError:
        """Report a locally generated error (unsupported, customer deleted, db)."""
        logger.info("gateway_error_reported", error_kind=error.kind.value, field=error.field)
        self.collector.report(error)
        return error

    @staticmethod
    def log_payload(exc: BaseException, error: NormalizedError) -> dict[str, Any]:
        """Response payload to log for a failed call: Stripe's body, else our record."""
        body = getattr(exc, "json_body", None)
        if isinstance(body, dict):
            return body
        return {error.host_key: error.as_record()}
