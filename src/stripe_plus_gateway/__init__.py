"""Stripe Plus: offsite credit card and ACH storage through Stripe."""

from stripe_plus_gateway.gateway import StripePlusGateway

__all__ = ["StripePlusGateway"]

__version__ = "1.0.0"
