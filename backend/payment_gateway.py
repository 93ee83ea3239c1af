"""Razorpay integration through the official SDK: orders, signature checks and refunds."""
import hashlib
import hmac
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 20

_SDK_ERRORS = (BadRequestError, GatewayError, ServerError)


class PaymentGatewayError(Exception):
    pass


@dataclass
class GatewayOrder:
    id: str
    amount: int  # paise
    currency: str
    receipt: Optional[str] = None


def get_razorpay_keys() -> Tuple[str, str]:
    return os.environ.get("RAZORPAY_KEY_ID", ""), os.environ.get("RAZORPAY_KEY_SECRET", "")


def get_client() -> razorpay.Client:
    key_id, key_secret = get_razorpay_keys()
    if not key_id or not key_secret:
        raise PaymentGatewayError("Payment gateway is not configured")
    return razorpay.Client(auth=(key_id, key_secret))


def to_subunits(amount: float) -> int:
    """Rupees to paise; Razorpay only accepts the smallest currency unit."""
    return int(round(float(amount) * 100))


def create_order(amount: float, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> GatewayOrder:
    data = {
        "amount": to_subunits(amount),
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    }
    client = get_client()
    try:
        order = client.order.create(data=data, timeout=REQUEST_TIMEOUT_SECONDS)
    except _SDK_ERRORS as exc:
        logger.warning("Razorpay order creation failed: %s", exc)
        raise PaymentGatewayError(f"Razorpay API error: {exc}") from exc
    except requests.exceptions.RequestException as exc:
        raise PaymentGatewayError(f"Network error: {exc}") from exc

    logger.info("Created Razorpay order %s for receipt %s", order["id"], receipt)
    return GatewayOrder(
        id=order["id"],
        amount=int(order.get("amount", data["amount"])),
        currency=order.get("currency", currency),
        receipt=order.get("receipt"),
    )


def expected_signature(order_id: str, payment_id: str, key_secret: Optional[str] = None) -> str:
    secret = key_secret if key_secret is not None else get_razorpay_keys()[1]
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str) -> bool:
    if not order_id or not payment_id or not signature:
        return False
    try:
        client = get_client()
    except PaymentGatewayError:
        return False
    try:
        client.utility.verify_payment_signature({
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        })
    except SignatureVerificationError:
        return False
    return True


def refund_payment(razorpay_payment_id: str, amount: float, reason: str) -> Dict:
    data = {"amount": to_subunits(amount), "notes": {"reason": reason}}
    client = get_client()
    try:
        refund = client.payment.refund(razorpay_payment_id, data, timeout=REQUEST_TIMEOUT_SECONDS)
    except _SDK_ERRORS as exc:
        logger.warning("Razorpay refund failed for %s: %s", razorpay_payment_id, exc)
        raise PaymentGatewayError(f"Razorpay API error: {exc}") from exc
    except requests.exceptions.RequestException as exc:
        raise PaymentGatewayError(f"Network error: {exc}") from exc
    return refund
