import pytest

from conftest import FakeResponse
from portal.checkout import CheckoutLoader
from portal.notifier import Notifier
from portal.payment_flow import (
    CHECKOUT_OPEN_FAILED_MESSAGE,
    GATEWAY_LOADING_MESSAGE,
    PRICING_MISSING_MESSAGE,
    RESYNC_DELAY_SECONDS,
    VERIFICATION_FAILED_MESSAGE,
    PaymentFlow,
    PaymentState,
)

ORDER = {
    "payment": {"id": 11, "status": "PENDING"},
    "razorpay_order": {"id": "order_1", "amount": 160000, "currency": "INR"},
    "key": "rzp_test_key",
}


class FakeWidget:
    def __init__(self):
        self.opened = []

    def open(self, options):
        self.opened.append(options)


class FakeScheduler:
    def __init__(self):
        self.pending = []

    def __call__(self, delay, callback):
        self.pending.append((delay, callback))

    def run(self):
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


@pytest.fixture
def widget():
    return FakeWidget()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def make_flow(api, fake_session, widget, scheduler):
    fake_session.routes[("GET", "/api/pricing")] = {"internal_delegate": 1600, "external_delegate": 1900}

    def _make(load_ok=True, **kwargs):
        loader = CheckoutLoader(lambda: widget if load_ok else None)
        options = {"user_id": 7, "registration_id": 4, "user_code": "KMUN25-0007", "scheduler": scheduler}
        options.update(kwargs)
        flow = PaymentFlow(api, loader, notifier=Notifier(), **options)
        flow.prepare()
        return flow

    return _make


def test_label_uses_internal_price(make_flow):
    flow = make_flow(is_kumaraguru=True)
    assert flow.amount == 1600
    assert flow.button_label == "Complete Payment - ₹1600"
    assert not flow.is_disabled


def test_label_uses_external_price(make_flow):
    flow = make_flow(is_kumaraguru=False)
    assert flow.amount == 1900
    assert flow.delegate_type == "External"
    assert flow.button_label == "Complete Payment - ₹1900"


def test_amount_override_skips_pricing(make_flow, fake_session):
    flow = make_flow(amount=999)
    assert flow.button_label == "Pay Now"
    assert "/api/pricing" not in fake_session.paths()


def test_pay_before_checkout_loads_only_toasts(make_flow, fake_session, widget):
    flow = make_flow(load_ok=False)
    assert flow.is_disabled
    assert flow.pay() is False
    assert flow.notifier.errors() == [GATEWAY_LOADING_MESSAGE]
    assert fake_session.paths("POST") == []
    assert widget.opened == []


def test_pay_without_pricing_only_toasts(make_flow, fake_session):
    fake_session.routes[("GET", "/api/pricing")] = FakeResponse(500, {"detail": "down"})
    flow = make_flow()
    assert flow.pay() is False
    assert flow.notifier.errors() == [PRICING_MISSING_MESSAGE]
    assert fake_session.paths("POST") == []


def test_order_failure_returns_to_idle_with_server_message(make_flow, fake_session, widget):
    fake_session.routes[("POST", "/api/payments/create-order")] = FakeResponse(
        403, {"detail": "insufficient permissions"}
    )
    failures = []
    flow = make_flow(on_failure=failures.append)
    assert flow.pay() is False
    assert flow.state == PaymentState.IDLE
    assert flow.notifier.last == ("error", "insufficient permissions")
    assert widget.opened == []
    assert len(failures) == 1


def test_successful_payment_verifies_and_resyncs(make_flow, fake_session, widget, scheduler):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER
    fake_session.routes[("POST", "/api/payments/verify")] = {"id": 11, "status": "PAID"}
    fake_session.routes[("GET", "/api/payments/11")] = {"id": 11, "status": "PAID", "refund_amount": None}
    fake_session.routes[("GET", "/api/registrations/me")] = {"id": 4, "payment_status": "PAID"}
    verified, resynced = [], []
    flow = make_flow(on_success=verified.append, on_resync=resynced.append)

    assert flow.pay() is True
    assert flow.state == PaymentState.PROCESSING
    options = widget.opened[0]
    assert options["order_id"] == "order_1"
    assert options["amount"] == 160000
    assert options["key"] == "rzp_test_key"
    assert options["notes"]["delegate_type"] == "External"

    options["handler"]({"razorpay_payment_id": "pay_1", "razorpay_signature": "sig"})
    verify_call = [c for c in fake_session.calls if c["path"] == "/api/payments/verify"][0]
    assert verify_call["json"] == {"payment_id": 11, "razorpay_payment_id": "pay_1", "razorpay_signature": "sig"}
    assert flow.state == PaymentState.SUCCESS
    assert flow.button_label == "Payment Successful!"
    assert verified == [{"id": 11, "status": "PAID"}]
    assert [delay for delay, _ in scheduler.pending] == [RESYNC_DELAY_SECONDS]

    scheduler.run()
    assert resynced == [flow]
    assert flow.registration == {"id": 4, "payment_status": "PAID"}


def test_button_stays_disabled_while_processing_and_after_success(make_flow, fake_session, widget):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER
    fake_session.routes[("POST", "/api/payments/verify")] = {"id": 11, "status": "PAID"}
    flow = make_flow()
    flow.pay()
    assert flow.state == PaymentState.PROCESSING
    assert flow.is_disabled
    assert flow.button_label == "Processing Payment..."
    assert flow.pay() is False
    assert len(widget.opened) == 1

    widget.opened[0]["handler"]({"razorpay_payment_id": "pay_1", "razorpay_signature": "sig"})
    assert flow.state == PaymentState.SUCCESS
    assert flow.is_disabled
    assert flow.pay() is False
    assert fake_session.paths("POST").count("/api/payments/create-order") == 1


def test_checkout_open_failure_returns_to_idle(make_flow, fake_session, widget):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER

    def broken_open(options):
        raise RuntimeError("popup blocked")

    widget.open = broken_open
    failures = []
    flow = make_flow(on_failure=failures.append)
    assert flow.pay() is False
    assert flow.state == PaymentState.IDLE
    assert not flow.loading
    assert not flow.is_disabled
    assert flow.notifier.last == ("error", CHECKOUT_OPEN_FAILED_MESSAGE)
    assert len(failures) == 1
    assert isinstance(failures[0], RuntimeError)


def test_verification_failure_then_try_again(make_flow, fake_session, widget):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER
    fake_session.routes[("POST", "/api/payments/verify")] = FakeResponse(400, {"detail": "Payment verification failed"})
    flow = make_flow()
    flow.pay()
    widget.opened[0]["handler"]({"razorpay_payment_id": "pay_1", "razorpay_signature": "bad"})

    assert flow.state == PaymentState.FAILED
    assert flow.button_label == "Payment Failed"
    assert flow.notifier.last == ("error", VERIFICATION_FAILED_MESSAGE)

    calls_before = len(fake_session.calls)
    flow.try_again()
    assert flow.state == PaymentState.IDLE
    assert len(fake_session.calls) == calls_before


def test_dismissing_checkout_returns_to_idle(make_flow, fake_session, widget):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER
    flow = make_flow()
    flow.pay()
    widget.opened[0]["modal"]["ondismiss"]()
    assert flow.state == PaymentState.IDLE
    assert not flow.is_disabled


def test_closed_flow_ignores_late_callbacks(make_flow, fake_session, widget, scheduler):
    fake_session.routes[("POST", "/api/payments/create-order")] = ORDER
    flow = make_flow()
    flow.pay()
    flow.close()
    widget.opened[0]["handler"]({"razorpay_payment_id": "pay_1", "razorpay_signature": "sig"})
    assert "/api/payments/verify" not in fake_session.paths()
    assert scheduler.pending == []


def test_checkout_loader_loads_once():
    created = []

    def factory():
        created.append(object())
        return created[-1]

    loader = CheckoutLoader(factory)
    first = loader.load()
    second = loader.load()
    assert first is second
    assert first.result() is True
    assert len(created) == 1
    assert loader.loaded


def test_checkout_loader_failure_resolves_false():
    def factory():
        raise OSError("blocked")

    loader = CheckoutLoader(factory)
    assert loader.load().result() is False
    assert not loader.loaded


def test_shared_loader_is_process_wide(monkeypatch):
    import portal.checkout as checkout

    monkeypatch.setattr(checkout, "_shared_loader", None)
    with pytest.raises(ValueError):
        checkout.get_shared_loader()
    first = checkout.get_shared_loader(FakeWidget)
    assert checkout.get_shared_loader() is first
