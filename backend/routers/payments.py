import io
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

import payment_gateway
from database import get_db
from email_workflows import send_payment_receipt
from models import Payment, PaymentStatus, Registration, TransactionLog, User
from routers.pricing import get_or_create_pricing
from schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentListItem,
    PaymentListResponse,
    PaymentResponse,
    PaymentStats,
    RazorpayOrder,
    RefundRequest,
    TransactionLogListResponse,
    TransactionLogResponse,
    VerifyPaymentRequest,
)
from security import ensure_owner_or_admin, require_admin, require_dev_admin, require_user
from time_utils import format_display, now_tz
from utils import log_transaction, paginate

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_payment_or_404(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


def _registration_fee(db: Session, owner: User, registration: Optional[Registration]) -> float:
    pricing = get_or_create_pricing(db)
    is_internal = registration.is_kumaraguru if registration else owner.is_kumaraguru
    return float(pricing.internal_delegate if is_internal else pricing.external_delegate)


def _gateway_failure(exc: payment_gateway.PaymentGatewayError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.post("/payments/create-order", response_model=CreateOrderResponse)
def create_order(
    payload: CreateOrderRequest,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    ensure_owner_or_admin(user, payload.user_id)
    owner = db.query(User).filter(User.id == payload.user_id).first()
    if not owner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    registration = None
    if payload.registration_id is not None:
        registration = db.query(Registration).filter(Registration.id == payload.registration_id).first()
        if not registration or registration.user_id != owner.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
        already_paid = (
            db.query(Payment)
            .filter(Payment.registration_id == registration.id, Payment.status == PaymentStatus.PAID)
            .first()
        )
        if already_paid:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Payment already completed")

    amount = _registration_fee(db, owner, registration)
    if abs(payload.amount - amount) > 0.005:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount does not match the registration fee",
        )

    currency = payload.currency.upper()
    receipt = f"kmun_{owner.id}_{int(now_tz().timestamp())}"
    notes = {"user_id": str(owner.id), "user_code": owner.user_code or ""}
    if registration:
        notes["registration_id"] = str(registration.id)
    try:
        order = payment_gateway.create_order(amount, currency, receipt, notes)
    except payment_gateway.PaymentGatewayError as exc:
        raise _gateway_failure(exc) from exc

    payment = Payment(
        user_id=owner.id,
        registration_id=registration.id if registration else None,
        amount=amount,
        currency=currency,
        status=PaymentStatus.PENDING,
        razorpay_order_id=order.id,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    log_transaction(db, user, "PAYMENT_ORDER_CREATED", {
        "payment_id": payment.id,
        "razorpay_order_id": order.id,
        "amount": payment.amount,
    }, request)

    key_id, _ = payment_gateway.get_razorpay_keys()
    return CreateOrderResponse(
        payment=PaymentResponse.model_validate(payment),
        razorpay_order=RazorpayOrder(id=order.id, amount=order.amount, currency=order.currency, receipt=order.receipt),
        key=key_id,
    )


@router.post("/payments/verify", response_model=PaymentResponse)
def verify_payment(
    payload: VerifyPaymentRequest,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    payment = _get_payment_or_404(db, payload.payment_id)
    ensure_owner_or_admin(user, payment.user_id)

    if payment.status == PaymentStatus.PAID:
        if payment.razorpay_payment_id == payload.razorpay_payment_id:
            return PaymentResponse.model_validate(payment)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Payment already completed")
    if payment.status == PaymentStatus.REFUNDED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Payment has been refunded")

    valid = payment_gateway.verify_signature(
        payment.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
    )
    payment.razorpay_payment_id = payload.razorpay_payment_id
    payment.razorpay_signature = payload.razorpay_signature
    if not valid:
        payment.status = PaymentStatus.FAILED
        db.commit()
        log_transaction(db, user, "PAYMENT_VERIFICATION_FAILED", {"payment_id": payment.id}, request)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment verification failed")

    payment.status = PaymentStatus.PAID
    db.commit()
    db.refresh(payment)
    log_transaction(db, user, "PAYMENT_VERIFIED", {
        "payment_id": payment.id,
        "razorpay_payment_id": payment.razorpay_payment_id,
        "amount": payment.amount,
    }, request)
    send_payment_receipt(payment)
    return PaymentResponse.model_validate(payment)


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[PaymentStatus] = Query(default=None, alias="status"),
    user_id: Optional[int] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Payment).options(joinedload(Payment.user))
    if status_filter:
        query = query.filter(Payment.status == status_filter)
    if user_id:
        query = query.filter(Payment.user_id == user_id)
    rows, pagination = paginate(query.order_by(Payment.created_at.desc(), Payment.id.desc()), page, limit)
    return PaymentListResponse(
        payments=[PaymentListItem.model_validate(row) for row in rows],
        pagination=pagination,
    )


@router.get("/payments/stats", response_model=PaymentStats)
def payment_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    counts = dict(db.query(Payment.status, func.count(Payment.id)).group_by(Payment.status).all())
    total = sum(counts.values())
    total_amount = db.query(func.coalesce(func.sum(Payment.amount), 0)).scalar() or 0
    successful_amount = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.status == PaymentStatus.PAID)
        .scalar()
        or 0
    )
    successful = counts.get(PaymentStatus.PAID, 0)
    success_rate = f"{(successful / total * 100):.2f}" if total else "0"
    return PaymentStats(
        total_payments=total,
        successful_payments=successful,
        pending_payments=counts.get(PaymentStatus.PENDING, 0),
        failed_payments=counts.get(PaymentStatus.FAILED, 0),
        refunded_payments=counts.get(PaymentStatus.REFUNDED, 0),
        total_amount=float(total_amount),
        successful_amount=float(successful_amount),
        success_rate=success_rate,
    )


@router.get("/payments/logs", response_model=TransactionLogListResponse)
def payment_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    action: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(TransactionLog).options(joinedload(TransactionLog.user))
    if action:
        query = query.filter(TransactionLog.action == action.strip().upper())
    else:
        query = query.filter(TransactionLog.action.like("PAYMENT_%"))
    rows, pagination = paginate(
        query.order_by(TransactionLog.created_at.desc(), TransactionLog.id.desc()), page, limit
    )
    return TransactionLogListResponse(
        logs=[TransactionLogResponse.model_validate(row) for row in rows],
        pagination=pagination,
    )


@router.get("/payments/export")
def export_payments(
    status_filter: Optional[PaymentStatus] = Query(default=None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Payment).options(joinedload(Payment.user))
    if status_filter:
        query = query.filter(Payment.status == status_filter)
    rows = query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    wb = Workbook()
    ws = wb.active
    ws.title = "Payments"
    ws.append([
        "Payment ID", "Delegate ID", "Name", "Email", "Institution", "Amount", "Currency",
        "Status", "Razorpay Order", "Razorpay Payment", "Refund Amount", "Created",
    ])
    for payment in rows:
        user = payment.user
        ws.append([
            payment.id,
            user.user_code if user else None,
            " ".join(part for part in ((user.first_name, user.last_name) if user else ()) if part) or None,
            user.email if user else None,
            user.institution if user else None,
            payment.amount,
            payment.currency,
            payment.status.value,
            payment.razorpay_order_id,
            payment.razorpay_payment_id,
            payment.refund_amount,
            format_display(payment.created_at),
        ])
    stream = io.BytesIO()
    wb.save(stream)
    stream.seek(0)
    headers = {"Content-Disposition": "attachment; filename=payments.xlsx"}
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    payment = _get_payment_or_404(db, payment_id)
    ensure_owner_or_admin(user, payment.user_id)
    return PaymentResponse.model_validate(payment)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
def refund_payment(
    payment_id: int,
    payload: RefundRequest,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    payment = _get_payment_or_404(db, payment_id)
    if payment.status != PaymentStatus.PAID or not payment.razorpay_payment_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only completed payments can be refunded")
    if payload.amount > payment.amount:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Refund amount exceeds payment amount")

    try:
        refund = payment_gateway.refund_payment(payment.razorpay_payment_id, payload.amount, payload.reason)
    except payment_gateway.PaymentGatewayError as exc:
        raise _gateway_failure(exc) from exc

    payment.status = PaymentStatus.REFUNDED
    payment.refund_amount = payload.amount
    payment.refund_reason = payload.reason.strip()
    db.commit()
    db.refresh(payment)
    log_transaction(db, admin, "PAYMENT_REFUNDED", {
        "payment_id": payment.id,
        "refund_id": refund.get("id"),
        "amount": payload.amount,
        "reason": payment.refund_reason,
    }, request)
    logger.info("Payment %s refunded by user %s", payment.id, admin.id)
    return PaymentResponse.model_validate(payment)
