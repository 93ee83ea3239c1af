import io

import pytest
from openpyxl import load_workbook

import email_workflows
import payment_gateway
from conftest import auth_headers
from models import Payment, PaymentStatus, TransactionLog


@pytest.fixture
def gateway(monkeypatch):
    calls = {"orders": [], "refunds": []}

    def fake_create_order(amount, currency, receipt, notes=None):
        calls["orders"].append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        return payment_gateway.GatewayOrder(
            id=f"order_{len(calls['orders'])}",
            amount=payment_gateway.to_subunits(amount),
            currency=currency,
            receipt=receipt,
        )

    def fake_refund(razorpay_payment_id, amount, reason):
        calls["refunds"].append((razorpay_payment_id, amount, reason))
        return {"id": "rfnd_1", "amount": payment_gateway.to_subunits(amount)}

    monkeypatch.setattr(payment_gateway, "create_order", fake_create_order)
    monkeypatch.setattr(payment_gateway, "refund_payment", fake_refund)
    monkeypatch.setattr(email_workflows, "send_email", lambda *args, **kwargs: None)
    return calls


def _create_order(client, user, registration, amount=3500):
    return client.post(
        "/api/payments/create-order",
        json={"user_id": user.id, "registration_id": registration.id, "amount": amount, "currency": "INR"},
        headers=auth_headers(user),
    )


def _verify(client, user, payment_id, order_id, razorpay_payment_id="pay_123", signature=None):
    signature = signature or payment_gateway.expected_signature(order_id, razorpay_payment_id)
    return client.post(
        "/api/payments/verify",
        json={
            "payment_id": payment_id,
            "razorpay_payment_id": razorpay_payment_id,
            "razorpay_signature": signature,
        },
        headers=auth_headers(user),
    )


def test_create_order_returns_gateway_order_and_key(client, delegate, registration, gateway):
    response = _create_order(client, delegate, registration)
    assert response.status_code == 200
    body = response.json()
    assert body["key"] == "rzp_test_key"
    assert body["razorpay_order"] == {"id": "order_1", "amount": 350000, "currency": "INR", "receipt": gateway["orders"][0]["receipt"]}
    assert body["payment"]["status"] == "PENDING"
    assert body["payment"]["razorpay_order_id"] == "order_1"


def test_create_order_for_someone_else_is_forbidden(client, delegate, make_user, registration, gateway):
    other = make_user()
    response = client.post(
        "/api/payments/create-order",
        json={"user_id": delegate.id, "registration_id": registration.id, "amount": 3500},
        headers=auth_headers(other),
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"
    assert gateway["orders"] == []


def test_create_order_rejects_amount_below_the_fee(client, db_session, delegate, registration, gateway):
    response = _create_order(client, delegate, registration, amount=1)
    assert response.status_code == 400
    assert response.json()["detail"] == "Amount does not match the registration fee"
    assert gateway["orders"] == []
    assert db_session.query(Payment).count() == 0


def test_create_order_charges_internal_rate_for_kumaraguru_registration(client, db_session, delegate, registration, gateway):
    registration.is_kumaraguru = True
    db_session.commit()
    response = _create_order(client, delegate, registration, amount=2500)
    assert response.status_code == 200
    assert gateway["orders"][0]["amount"] == 2500
    assert response.json()["payment"]["amount"] == 2500

    external = _create_order(client, delegate, registration, amount=3500)
    assert external.status_code == 400


def test_gateway_failure_maps_to_bad_gateway(client, delegate, registration, monkeypatch):
    def failing(*args, **kwargs):
        raise payment_gateway.PaymentGatewayError("Payment gateway is not configured")

    monkeypatch.setattr(payment_gateway, "create_order", failing)
    response = _create_order(client, delegate, registration)
    assert response.status_code == 502
    assert response.json()["detail"] == "Payment gateway is not configured"


def test_verify_marks_paid_and_logs(client, db_session, delegate, registration, gateway):
    order = _create_order(client, delegate, registration).json()
    response = _verify(client, delegate, order["payment"]["id"], "order_1")
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"
    assert response.json()["razorpay_payment_id"] == "pay_123"

    actions = [row.action for row in db_session.query(TransactionLog).all()]
    assert "PAYMENT_ORDER_CREATED" in actions
    assert "PAYMENT_VERIFIED" in actions

    again = _create_order(client, delegate, registration)
    assert again.status_code == 409


def test_verify_with_bad_signature_marks_failed(client, db_session, delegate, registration, gateway):
    order = _create_order(client, delegate, registration).json()
    response = _verify(client, delegate, order["payment"]["id"], "order_1", signature="deadbeef")
    assert response.status_code == 400
    assert response.json()["detail"] == "Payment verification failed"
    payment = db_session.query(Payment).filter(Payment.id == order["payment"]["id"]).first()
    db_session.refresh(payment)
    assert payment.status == PaymentStatus.FAILED


def test_registration_reports_latest_payment_status(client, delegate, registration, gateway):
    order = _create_order(client, delegate, registration).json()
    _verify(client, delegate, order["payment"]["id"], "order_1")
    me = client.get("/api/registrations/me", headers=auth_headers(delegate)).json()
    assert me["payment_status"] == "PAID"


def test_admin_listing_stats_and_logs(client, delegate, affairs_admin, registration, gateway):
    first = _create_order(client, delegate, registration).json()
    _verify(client, delegate, first["payment"]["id"], "order_1")
    headers = auth_headers(affairs_admin)

    listing = client.get("/api/payments", params={"page": 1, "limit": 5, "status": "PAID"}, headers=headers).json()
    assert listing["pagination"] == {"page": 1, "limit": 5, "total": 1, "pages": 1}
    assert listing["payments"][0]["user"]["email"] == delegate.email

    stats = client.get("/api/payments/stats", headers=headers).json()
    assert stats["total_payments"] == 1
    assert stats["successful_payments"] == 1
    assert stats["successful_amount"] == 3500
    assert stats["success_rate"] == "100.00"

    logs = client.get("/api/payments/logs", headers=headers).json()
    assert {row["action"] for row in logs["logs"]} == {"PAYMENT_ORDER_CREATED", "PAYMENT_VERIFIED"}


def test_delegate_cannot_list_payments(client, delegate):
    response = client.get("/api/payments", headers=auth_headers(delegate))
    assert response.status_code == 403


def test_export_is_an_xlsx_sheet(client, delegate, affairs_admin, registration, gateway):
    _create_order(client, delegate, registration)
    response = client.get("/api/payments/export", headers=auth_headers(affairs_admin))
    assert response.status_code == 200
    workbook = load_workbook(io.BytesIO(response.content))
    rows = list(workbook.active.iter_rows(values_only=True))
    assert rows[0][0] == "Payment ID"
    assert rows[1][1] == delegate.user_code
    assert rows[1][7] == "PENDING"


def test_refund_requires_dev_admin_and_paid_payment(client, delegate, affairs_admin, dev_admin, registration, gateway):
    order = _create_order(client, delegate, registration).json()
    payment_id = order["payment"]["id"]

    pending = client.post(
        f"/api/payments/{payment_id}/refund",
        json={"amount": 100, "reason": "Duplicate"},
        headers=auth_headers(dev_admin),
    )
    assert pending.status_code == 400

    _verify(client, delegate, payment_id, "order_1")
    forbidden = client.post(
        f"/api/payments/{payment_id}/refund",
        json={"amount": 100, "reason": "Duplicate"},
        headers=auth_headers(affairs_admin),
    )
    assert forbidden.status_code == 403

    refunded = client.post(
        f"/api/payments/{payment_id}/refund",
        json={"amount": 3500, "reason": "Duplicate"},
        headers=auth_headers(dev_admin),
    )
    assert refunded.status_code == 200
    assert refunded.json()["status"] == "REFUNDED"
    assert refunded.json()["refund_amount"] == 3500
    assert gateway["refunds"] == [("pay_123", 3500.0, "Duplicate")]
