import smtplib
from types import SimpleNamespace

import pytest
import requests
from razorpay.errors import BadRequestError, ServerError

import emailer
import payment_gateway
from bootstrap import ensure_default_admin, ensure_singleton_rows
from email_bulk import render_email_template
from models import Popup, Pricing, User, UserRole
from scripts.prepare_static_deploy import prepare_static_deploy


class _FakeRazorpayClient:
    def __init__(self):
        self.auth = None
        self.calls = []
        self.error = None
        self.order = SimpleNamespace(create=self._create_order)
        self.payment = SimpleNamespace(refund=self._refund)

    def _create_order(self, data=None, **options):
        self.calls.append(("order.create", data, options))
        if self.error:
            raise self.error
        return {"id": "order_9", "amount": data["amount"], "currency": data["currency"], "receipt": data["receipt"]}

    def _refund(self, payment_id, data=None, **options):
        self.calls.append(("payment.refund", payment_id, data, options))
        if self.error:
            raise self.error
        return {"id": "rfnd_1", "payment_id": payment_id, "amount": data["amount"]}


@pytest.fixture
def razorpay_client(monkeypatch):
    client = _FakeRazorpayClient()

    def factory(auth=None):
        client.auth = auth
        return client

    monkeypatch.setattr(payment_gateway.razorpay, "Client", factory)
    return client


def test_singleton_rows_are_seeded_once(db_session):
    ensure_singleton_rows(db_session)
    ensure_singleton_rows(db_session)
    assert db_session.query(Pricing).count() == 1
    assert db_session.query(Popup).count() == 1
    assert db_session.query(Popup).first().is_active is False


def test_default_admin_is_created_or_promoted(db_session, make_user, monkeypatch):
    monkeypatch.setenv("DEFAULT_ADMIN_EMAIL", "chair@example.com")
    existing = make_user(email="chair@example.com")
    ensure_default_admin(db_session)
    db_session.refresh(existing)
    assert existing.role == UserRole.DEV_ADMIN
    assert db_session.query(User).count() == 1


def test_default_admin_from_env(db_session, monkeypatch):
    monkeypatch.setenv("DEFAULT_ADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("DEFAULT_ADMIN_PASSWORD", "changeme123")
    ensure_default_admin(db_session)
    admin = db_session.query(User).filter(User.role == UserRole.DEV_ADMIN).one()
    assert admin.email == "root@example.com"
    assert admin.user_code.startswith("KMUN25-")


def test_render_email_template_tags():
    context = {"first_name": "Asha", "committee": "<UNSC>", "payment_status": None}
    assert render_email_template("Hi <first_name>, {{ committee }}", context, html_mode=False) == "Hi Asha, <UNSC>"
    assert render_email_template("{{committee}}", context, html_mode=True) == "&lt;UNSC&gt;"
    assert render_email_template("Status: <payment_status>", context, html_mode=False) == "Status: "
    assert render_email_template("<b>bold</b>", context, html_mode=False) == "<b>bold</b>"


def test_signature_verification():
    signature = payment_gateway.expected_signature("order_1", "pay_1")
    assert payment_gateway.verify_signature("order_1", "pay_1", signature)
    assert not payment_gateway.verify_signature("order_1", "pay_2", signature)
    assert not payment_gateway.verify_signature("order_1", "pay_1", "")


def test_to_subunits_rounds_to_paise():
    assert payment_gateway.to_subunits(3500) == 350000
    assert payment_gateway.to_subunits(19.999) == 2000


def test_create_order_sends_paise(razorpay_client):
    order = payment_gateway.create_order(2500, "INR", "r1", {"registration_id": "4"})
    assert order == payment_gateway.GatewayOrder(id="order_9", amount=250000, currency="INR", receipt="r1")
    assert razorpay_client.auth == ("rzp_test_key", "rzp_test_secret")
    name, data, options = razorpay_client.calls[0]
    assert name == "order.create"
    assert data == {"amount": 250000, "currency": "INR", "receipt": "r1", "notes": {"registration_id": "4"}}
    assert options == {"timeout": payment_gateway.REQUEST_TIMEOUT_SECONDS}


def test_create_order_surfaces_gateway_errors(razorpay_client):
    razorpay_client.error = BadRequestError("amount too small")
    with pytest.raises(payment_gateway.PaymentGatewayError, match="amount too small"):
        payment_gateway.create_order(0.5, "INR", "r1")

    razorpay_client.error = requests.exceptions.ConnectionError("connection reset")
    with pytest.raises(payment_gateway.PaymentGatewayError, match="Network error"):
        payment_gateway.create_order(100, "INR", "r1")


def test_refund_sends_paise_and_reason(razorpay_client):
    refund = payment_gateway.refund_payment("pay_1", 3500, "Duplicate")
    assert refund["id"] == "rfnd_1"
    assert razorpay_client.calls[0][:3] == ("payment.refund", "pay_1", {"amount": 350000, "notes": {"reason": "Duplicate"}})

    razorpay_client.error = ServerError("upstream down")
    with pytest.raises(payment_gateway.PaymentGatewayError, match="upstream down"):
        payment_gateway.refund_payment("pay_1", 3500, "Duplicate")


def test_unconfigured_gateway(monkeypatch):
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", "")
    with pytest.raises(payment_gateway.PaymentGatewayError, match="not configured"):
        payment_gateway.create_order(100, "INR", "r1")


def test_prepare_static_deploy(tmp_path):
    (tmp_path / "public").mkdir()
    (tmp_path / "_redirects").write_text("/* /index.html 200\n")
    (tmp_path / "public" / "logo.png").write_bytes(b"logo")
    (tmp_path / "public" / "favicon.ico").write_bytes(b"icon")
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "favicon.ico").write_bytes(b"built")

    summary = prepare_static_deploy(tmp_path)

    assert summary == {"copied": ["_redirects", "logo.png"], "skipped": ["favicon.ico"], "missing": ["dome-2.png"]}
    assert (dist / "_redirects").read_text() == "/* /index.html 200\n"
    assert (dist / "favicon.ico").read_bytes() == b"built"


class _FakeSMTP:
    sent = []
    failing_hosts = set()

    def __init__(self, host, port, timeout=None):
        self.host = host
        if host in self.failing_hosts:
            raise OSError(f"cannot reach {host}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        self.sent.append((self.host, message["To"], message["Subject"]))


@pytest.fixture
def smtp(monkeypatch):
    _FakeSMTP.sent = []
    _FakeSMTP.failing_hosts = set()
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    for prefix, host in (("SMTP_GMAIL", "smtp.gmail.com"), ("SMTP_OUTLOOK", "smtp.office365.com")):
        monkeypatch.setenv(f"{prefix}_HOST", host)
        monkeypatch.setenv(f"{prefix}_PORT", "587")
        monkeypatch.setenv(f"{prefix}_USER", f"mun@{host}")
        monkeypatch.setenv(f"{prefix}_PASS", "app-password")
    return _FakeSMTP


def test_send_email_uses_chosen_provider(smtp):
    emailer.send_email("delegate@example.com", "Hello", "<p>Hi</p>", "Hi", provider="outlook")
    assert smtp.sent == [("smtp.office365.com", "delegate@example.com", "Hello")]


def test_send_email_falls_back_to_other_provider(smtp):
    smtp.failing_hosts.add("smtp.gmail.com")
    emailer.send_email("delegate@example.com", "Hello", "<p>Hi</p>", "Hi")
    assert [host for host, _, _ in smtp.sent] == ["smtp.office365.com"]


def test_send_email_reports_total_failure(smtp):
    smtp.failing_hosts.update({"smtp.gmail.com", "smtp.office365.com"})
    with pytest.raises(RuntimeError, match="gmail, outlook"):
        emailer.send_email("delegate@example.com", "Hello", "<p>Hi</p>", "Hi")


def test_send_email_rejects_unknown_provider():
    with pytest.raises(ValueError):
        emailer.send_email("delegate@example.com", "Hello", "<p>Hi</p>", "Hi", provider="yahoo")
