"""Client side of the Kumaraguru MUN portal: API client, payment flow and dashboard controllers."""
from portal.api import ApiClient, ApiError
from portal.checkout import CheckoutLoader, get_shared_loader
from portal.notifier import Notifier
from portal.payment_flow import PaymentFlow, PaymentState

__all__ = [
    "ApiClient",
    "ApiError",
    "CheckoutLoader",
    "Notifier",
    "PaymentFlow",
    "PaymentState",
    "get_shared_loader",
]
