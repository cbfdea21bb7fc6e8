"""Masked logging of every request sent to Stripe.

Each remote call produces two entries, the request ("input") and the
response ("output"), tagged with whether the call succeeded. Card data is
masked at any depth before anything is serialized. Logging is best-effort:
no failure here may interrupt a payment flow.
"""

import json
from typing import Any, Iterable, Protocol

import structlog
from sqlalchemy.orm import Session

from stripe_plus_gateway.infrastructure.repository import GatewayLogRepository

logger = structlog.get_logger(__name__)

MASK_FIELDS = frozenset({"number", "exp_month", "exp_year", "cvc"})
MASK_CHAR = "x"


def mask_data(data: Any, mask_fields: frozenset[str] = MASK_FIELDS) -> Any:
    """
    Return a copy of `data` with the values of `mask_fields` masked.

    Matching is exact and case-sensitive on mapping keys, recursing through
    mappings, lists and tuples.
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if key in mask_fields and value is not None and not isinstance(value, (dict, list, tuple)):
                masked[key] = MASK_CHAR * len(str(value))
            else:
                masked[key] = mask_data(value, mask_fields)
        return masked
    if isinstance(data, (list, tuple)):
        return [mask_data(item, mask_fields) for item in data]
    return data


class GatewayLogSink(Protocol):
    """Destination for masked gateway log entries."""

    def write(self, url: str, direction: str, data: str, success: bool) -> None:
        ...


class StructlogSink:
    """Writes gateway log entries to the application log."""

    def write(self, url: str, direction: str, data: str, success: bool) -> None:
        logger.info(
            "stripe_gateway_log",
            url=url,
            direction=direction,
            success=success,
            data=data,
        )


class DatabaseSink:
    """
    Persists gateway log entries in the `gateway_logs` table.

    Each write runs in a savepoint so a failed insert never poisons the
    caller's session.
    """

    def __init__(self, session: Session):
        self.session = session
        self.repository = GatewayLogRepository(session)

    def write(self, url: str, direction: str, data: str, success: bool) -> None:
        with self.session.begin_nested():
            self.repository.add(url=url, direction=direction, data=data, success=success)


class RedactingLogger:
    """Records masked request/response pairs for remote calls."""

    def __init__(self, base_url: str, sinks: Iterable[GatewayLogSink] | None = None):
        self.base_url = base_url
        self.sinks = list(sinks) if sinks is not None else [StructlogSink()]

    def url(self, path: str) -> str:
        return self.base_url + path

    def log_call(
        self,
        path: str,
        request: Any,
        response: Any,
        is_error: bool = False,
    ) -> None:
        """
        Log a remote call.

        Args:
            path: API path relative to the Stripe base URL (e.g. "charges")
            request: Parameters sent to Stripe
            response: Stripe's response, or the error payload on failure
            is_error: Marks both entries unsuccessful
        """
        url = self.url(path)
        for direction, payload in (("input", request), ("output", response)):
            try:
                data = json.dumps(mask_data(payload), default=str)
            except Exception as e:
                logger.warning("gateway_log_serialize_failed", url=url, direction=direction, error=str(e))
                continue

            for sink in self.sinks:
                try:
                    sink.write(url, direction, data, not is_error)
                except Exception as e:
                    # Logging never blocks the payment flow
                    logger.warning(
                        "gateway_log_write_failed",
                        url=url,
                        direction=direction,
                        sink=type(sink).__name__,
                        error=str(e),
                    )
