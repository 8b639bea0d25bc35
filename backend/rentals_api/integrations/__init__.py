"""Integration shortcuts."""

from .stripe_client import CheckoutSession, StripeClient, StripeClientError

__all__ = [
    "CheckoutSession",
    "StripeClient",
    "StripeClientError",
]
