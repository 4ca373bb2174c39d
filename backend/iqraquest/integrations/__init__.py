"""External service integrations for the IqraQuest payouts backend."""

from .paypal_client import PayPalClient, PayPalError, get_paypal_client

__all__ = ["PayPalClient", "PayPalError", "get_paypal_client"]
