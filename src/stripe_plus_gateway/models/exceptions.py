"""Custom exceptions for the Stripe Plus gateway."""


class GatewayError(Exception):
    """Base exception for gateway-related errors."""

    pass


class GatewayConfigError(GatewayError):
    """
    Raised when the gateway is used without valid meta settings.

    Selecting an API key requires `environment` to name one of the two
    key fields and that field to be non-empty.
    """

    pass
