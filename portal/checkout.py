"""Load-once access to the external checkout widget.

The widget is whatever object ``factory()`` returns; the only thing the
payment flow needs from it is ``open(options)``. Loading happens at most once
per loader and every caller shares the same future, so concurrent flows never
trigger a second load.
"""
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

CHECKOUT_SCRIPT_URL = "https://checkout.razorpay.com/v1/checkout.js"


class CheckoutLoader:
    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self.widget: Any = None

    def load(self) -> "Future[bool]":
        with self._lock:
            if self._future is not None:
                return self._future
            future: Future = Future()
            self._future = future

        try:
            widget = self._factory()
        except Exception as exc:
            logger.error("Failed to load checkout from %s: %s", CHECKOUT_SCRIPT_URL, exc)
            future.set_result(False)
            return future

        self.widget = widget
        future.set_result(widget is not None)
        return future

    @property
    def loaded(self) -> bool:
        future = self._future
        return bool(future is not None and future.done() and future.result())


_shared_loader: Optional[CheckoutLoader] = None
_shared_lock = threading.Lock()


def get_shared_loader(factory: Optional[Callable[[], Any]] = None) -> CheckoutLoader:
    """Process-wide loader; the first call must supply the widget factory."""
    global _shared_loader
    with _shared_lock:
        if _shared_loader is None:
            if factory is None:
                raise ValueError("Checkout factory is required for the first load")
            _shared_loader = CheckoutLoader(factory)
        return _shared_loader
