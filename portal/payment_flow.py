"""Delegate payment completion: order creation, checkout, verification, resync.

States move ``idle -> processing -> success | failed``; ``failed`` only returns
to ``idle`` through :meth:`PaymentFlow.try_again`, and a dismissed checkout
drops straight back to ``idle``. After a verified payment the flow waits
``RESYNC_DELAY_SECONDS`` and refetches the payment and the registration
instead of reloading anything.
"""
import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from portal.api import ApiClient, ApiError
from portal.checkout import CheckoutLoader
from portal.notifier import Notifier

logger = logging.getLogger(__name__)

EVENT_NAME = "Kumaraguru MUN 2025"
THEME_COLOR = "#172d9d"
RESYNC_DELAY_SECONDS = 2.0

GATEWAY_LOADING_MESSAGE = "Payment gateway is still loading. Please try again."
PRICING_MISSING_MESSAGE = "Pricing information not available. Please try again."
PAYMENT_SUCCESS_MESSAGE = "Payment successful! Your registration is now confirmed."
VERIFICATION_FAILED_MESSAGE = "Payment verification failed. Please contact support."
CHECKOUT_OPEN_FAILED_MESSAGE = "Unable to open the payment window. Please try again."


class PaymentState(str, enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


def call_later(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class PaymentFlow:
    def __init__(
        self,
        api: ApiClient,
        loader: CheckoutLoader,
        *,
        user_id: int,
        registration_id: Optional[int],
        user_code: str = "",
        is_kumaraguru: bool = False,
        amount: Optional[float] = None,
        prefill: Optional[Dict[str, str]] = None,
        notifier: Optional[Notifier] = None,
        on_success: Optional[Callable[[Dict], None]] = None,
        on_failure: Optional[Callable[[Any], None]] = None,
        on_resync: Optional[Callable[["PaymentFlow"], None]] = None,
        scheduler: Callable[[float, Callable[[], None]], None] = call_later,
    ):
        self.api = api
        self.loader = loader
        self.user_id = user_id
        self.registration_id = registration_id
        self.user_code = user_code
        self.is_kumaraguru = is_kumaraguru
        self.amount_override = amount
        self.prefill = prefill or {}
        self.notifier = notifier or Notifier()
        self.on_success = on_success
        self.on_failure = on_failure
        self.on_resync = on_resync
        self.scheduler = scheduler

        self.state = PaymentState.IDLE
        self.loading = False
        self.checkout_loaded = False
        self.pricing: Optional[Dict] = None
        self.order: Optional[Dict] = None
        self.payment: Optional[Dict] = None
        self.registration: Optional[Dict] = None
        self._closed = False

    # loading

    def _load_checkout(self) -> None:
        loaded = self.loader.load().result()
        if not self._closed:
            self.checkout_loaded = bool(loaded)

    def _fetch_pricing(self) -> None:
        try:
            pricing = self.api.pricing.get()
        except ApiError as exc:
            logger.error("Failed to fetch pricing: %s", exc.message)
            return
        if not self._closed:
            self.pricing = pricing

    def prepare(self) -> None:
        """Load the checkout and fetch pricing concurrently; both finish before returning."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(self._load_checkout)]
            if self.amount_override is None:
                futures.append(pool.submit(self._fetch_pricing))
            for future in futures:
                future.result()

    def close(self) -> None:
        self._closed = True

    # derived state

    @property
    def amount(self) -> float:
        if self.amount_override is not None:
            return self.amount_override
        if not self.pricing:
            return 0
        key = "internal_delegate" if self.is_kumaraguru else "external_delegate"
        return self.pricing[key]

    @property
    def delegate_type(self) -> str:
        return "Internal" if self.is_kumaraguru else "External"

    @property
    def _amount_ready(self) -> bool:
        return self.amount_override is not None or self.pricing is not None

    @property
    def is_disabled(self) -> bool:
        return (
            self.loading
            or not self.checkout_loaded
            or not self._amount_ready
            or self.state in (PaymentState.PROCESSING, PaymentState.SUCCESS)
        )

    @property
    def button_label(self) -> str:
        if self.state == PaymentState.PROCESSING:
            return "Processing Payment..."
        if self.state == PaymentState.SUCCESS:
            return "Payment Successful!"
        if self.state == PaymentState.FAILED:
            return "Payment Failed"
        if self.amount_override is not None:
            return "Pay Now"
        return f"Complete Payment - ₹{_format_amount(self.amount)}"

    # actions

    def pay(self) -> bool:
        if not self.checkout_loaded:
            self.notifier.error(GATEWAY_LOADING_MESSAGE)
            return False
        if not self._amount_ready:
            self.notifier.error(PRICING_MISSING_MESSAGE)
            return False
        if self.state in (PaymentState.PROCESSING, PaymentState.SUCCESS):
            return False

        self.loading = True
        self.state = PaymentState.PROCESSING
        try:
            order = self.api.payments.create_order({
                "user_id": self.user_id,
                "registration_id": self.registration_id,
                "amount": self.amount,
                "currency": "INR",
            })
            if not order or "razorpay_order" not in order or "payment" not in order:
                raise ApiError("Failed to create payment order")
        except ApiError as exc:
            self.state = PaymentState.IDLE
            self.notifier.error(exc.message)
            if self.on_failure:
                self.on_failure(exc)
            return False
        finally:
            self.loading = False

        self.order = order
        self.payment = order["payment"]
        try:
            self.loader.widget.open(self.checkout_options(order))
        except Exception as exc:
            logger.exception("Checkout widget failed to open for order %s", order["razorpay_order"].get("id"))
            self.state = PaymentState.IDLE
            self.notifier.error(CHECKOUT_OPEN_FAILED_MESSAGE)
            if self.on_failure:
                self.on_failure(exc)
            return False
        return True

    def checkout_options(self, order: Dict) -> Dict:
        gateway_order = order["razorpay_order"]
        return {
            "key": order.get("key"),
            "amount": gateway_order["amount"],
            "currency": gateway_order["currency"],
            "name": EVENT_NAME,
            "description": f"Registration Payment - {self.delegate_type} Delegate",
            "order_id": gateway_order["id"],
            "prefill": {
                "name": self.prefill.get("name") or self.user_code,
                "email": self.prefill.get("email", ""),
                "contact": self.prefill.get("contact", ""),
            },
            "notes": {
                "user_id": str(self.user_id),
                "registration_id": str(self.registration_id or ""),
                "user_code": self.user_code,
                "delegate_type": self.delegate_type,
            },
            "theme": {"color": THEME_COLOR},
            "handler": self.handle_checkout_success,
            "modal": {"ondismiss": self.handle_dismiss},
        }

    def handle_checkout_success(self, response: Dict) -> None:
        if self._closed:
            return
        self.state = PaymentState.PROCESSING
        try:
            verified = self.api.payments.verify({
                "payment_id": self.payment["id"],
                "razorpay_payment_id": response.get("razorpay_payment_id"),
                "razorpay_signature": response.get("razorpay_signature"),
            })
        except ApiError as exc:
            self.state = PaymentState.FAILED
            self.notifier.error(VERIFICATION_FAILED_MESSAGE)
            if self.on_failure:
                self.on_failure(exc)
            return

        self.state = PaymentState.SUCCESS
        self.payment = verified
        self.notifier.success(PAYMENT_SUCCESS_MESSAGE)
        if self.on_success:
            self.on_success(verified)
        self.scheduler(RESYNC_DELAY_SECONDS, self.resync)

    def handle_dismiss(self) -> None:
        if self._closed:
            return
        logger.info("Payment modal dismissed")
        self.state = PaymentState.IDLE

    def try_again(self) -> None:
        if self.state == PaymentState.FAILED:
            self.state = PaymentState.IDLE

    def resync(self) -> None:
        if self._closed:
            return
        try:
            payment = self.api.payments.get(self.payment["id"]) if self.payment else None
            registration = self.api.registrations.me()
        except ApiError as exc:
            logger.warning("Payment resync failed: %s", exc.message)
            return
        if self._closed:
            return
        if payment is not None:
            self.payment = payment
        self.registration = registration
        if self.on_resync:
            self.on_resync(self)


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"
