"""
Package purchase flow.

A payment is created ``pending`` and completed by the gateway (status
refresh or notification) or immediately when a voucher makes it free.
Completion is idempotent: it grants access, redeems the voucher and
credits the mentor exactly once.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    BusinessRuleError,
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
)
from app.models.package import QuestionPackage
from app.models.payment import Payment, PaymentStatus
from app.models.tryout import SessionStatus, TryoutSession
from app.models.user import User
from app.models.voucher import Voucher
from app.services import mentor_service, voucher_service
from app.services.access import get_package_or_404, grant_access, has_paid_access
from app.services.midtrans import map_transaction_status
from app.utils.dates import utcnow


logger = logging.getLogger(__name__)

TOP_SESSIONS_LIMIT = 50


def new_order_id(payment_id: int) -> str:
    return f"SKD-{payment_id}-{uuid.uuid4().hex[:10]}"


def complete_payment(db: Session, payment: Payment, gateway_status: Optional[str] = None) -> Payment:
    """Mark a payment completed and apply its side effects once. Caller commits."""
    if gateway_status:
        payment.gateway_status = gateway_status
    if payment.is_completed:
        return payment

    payment.status = PaymentStatus.COMPLETED.value
    payment.paid_at = utcnow()
    grant_access(db, payment.user_id, payment.package_id, payment.id)

    if payment.voucher_id:
        voucher = db.query(Voucher).filter(Voucher.id == payment.voucher_id).first()
        if voucher:
            voucher_service.redeem_voucher(
                db,
                voucher,
                user_id=payment.user_id,
                package_id=payment.package_id,
                payment_id=payment.id,
                discount_amount=payment.discount_amount,
                original_price=payment.original_amount,
                final_price=payment.amount,
            )

    mentor_service.credit_earning(db, payment)
    logger.info(f"Payment {payment.id} completed (user {payment.user_id}, package {payment.package_id})")
    return payment


def apply_gateway_status(db: Session, payment: Payment, transaction_status: Optional[str]) -> Payment:
    """
    Apply a Midtrans ``transaction_status`` to a payment. Completed payments
    never go back to pending or failed. Caller commits.
    """
    new_status = map_transaction_status(transaction_status)
    if new_status == PaymentStatus.COMPLETED.value:
        return complete_payment(db, payment, transaction_status)

    payment.gateway_status = transaction_status
    if payment.is_completed:
        logger.warning(
            f"Ignoring gateway status '{transaction_status}' for completed payment {payment.id}"
        )
        return payment

    if payment.status != new_status:
        logger.info(f"Payment {payment.id} moved {payment.status} -> {new_status}")
        payment.status = new_status
    return payment


async def create_payment(
    db: Session,
    user: User,
    package_id: int,
    gateway: Any = None,
    voucher_code: Optional[str] = None,
    payment_method: str = "midtrans",
) -> Payment:
    """
    Start a purchase of a package, applying an optional voucher.

    Free results (price 0 or a full discount) complete immediately without
    the gateway; otherwise a Snap transaction is created.
    """
    package = get_package_or_404(db, package_id, user)
    if not package.is_active:
        raise BusinessRuleError("Package is not available for purchase")
    if not package.requires_payment:
        raise BusinessRuleError("This package is free and does not need a purchase")
    if has_paid_access(db, user, package.id):
        raise BusinessRuleError("You already have access to this package")

    original_amount = int(round(package.price))
    discount_amount = 0
    voucher: Optional[Voucher] = None

    if voucher_code:
        result = voucher_service.validate_voucher(db, voucher_code, original_amount, package.id)
        if not result["valid"]:
            raise BusinessRuleError(result["message"])
        voucher = db.query(Voucher).filter(Voucher.id == result["voucher_id"]).first()
        discount_amount = int(round(result["discount_amount"]))

    final_amount = max(0, original_amount - discount_amount)
    if final_amount > 0 and gateway is None:
        raise PaymentGatewayError("Payment gateway is not configured")

    payment = Payment(
        user_id=user.id,
        package_id=package.id,
        voucher_id=voucher.id if voucher else None,
        voucher_code=voucher.code if voucher else None,
        amount=final_amount,
        original_amount=original_amount,
        discount_amount=discount_amount,
        status=PaymentStatus.PENDING.value,
        payment_method=payment_method,
    )
    db.add(payment)
    db.flush()

    if final_amount <= 0:
        payment.payment_method = "voucher" if voucher else "free"
        complete_payment(db, payment)
        db.commit()
        db.refresh(payment)
        logger.info(f"Payment {payment.id} completed without gateway (free)")
        return payment

    payment.gateway_order_id = new_order_id(payment.id)
    db.commit()

    try:
        transaction = await gateway.create_transaction(
            order_id=payment.gateway_order_id,
            gross_amount=final_amount,
            item_name=package.title,
            customer={"first_name": user.full_name or user.email, "email": user.email, "phone": user.phone},
        )
    except PaymentGatewayError:
        payment.status = PaymentStatus.FAILED.value
        db.commit()
        raise

    payment.gateway_token = transaction.get("token")
    payment.gateway_redirect_url = transaction.get("redirect_url")
    db.commit()
    db.refresh(payment)
    logger.info(f"Payment {payment.id} pending at gateway as {payment.gateway_order_id}")
    return payment


def get_payment_for_user(db: Session, user: User, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.user_id != user.id and not user.is_admin:
        raise PermissionDeniedError("Not your payment")
    return payment


async def refresh_status(db: Session, payment: Payment, gateway: Any) -> Payment:
    """Ask the gateway for the latest status of a pending payment."""
    if payment.is_completed or not payment.gateway_order_id:
        return payment
    if gateway is None:
        raise PaymentGatewayError("Payment gateway is not configured")

    data = await gateway.get_status(payment.gateway_order_id)
    apply_gateway_status(db, payment, data.get("transaction_status"))
    db.commit()
    db.refresh(payment)
    return payment


def handle_notification(db: Session, payload: Dict[str, Any], gateway: Any) -> Payment:
    """Apply a verified gateway notification to its payment."""
    if gateway is None:
        raise PaymentGatewayError("Payment gateway is not configured")
    if not gateway.verify_signature(payload):
        logger.warning(f"Rejected gateway notification with bad signature for {payload.get('order_id')}")
        raise PermissionDeniedError("Invalid notification signature")

    order_id = payload.get("order_id")
    payment = db.query(Payment).filter(Payment.gateway_order_id == order_id).first()
    if not payment:
        raise NotFoundError("Payment not found")

    apply_gateway_status(db, payment, payload.get("transaction_status"))
    db.commit()
    db.refresh(payment)
    return payment


def list_user_payments(db: Session, user: User, status_filter: Optional[str] = None) -> List[Payment]:
    query = db.query(Payment).filter(Payment.user_id == user.id)
    if status_filter:
        query = query.filter(Payment.status == status_filter)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def package_stats(db: Session, package: QuestionPackage) -> Dict[str, Any]:
    """Completed payments and the best completed sessions of a package."""
    payments = db.query(Payment).filter(
        Payment.package_id == package.id,
        Payment.status == PaymentStatus.COMPLETED.value
    ).order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    sessions = db.query(TryoutSession).filter(
        TryoutSession.package_id == package.id,
        TryoutSession.status == SessionStatus.COMPLETED.value
    ).order_by(TryoutSession.total_score.desc(), TryoutSession.end_time.asc()).limit(TOP_SESSIONS_LIMIT).all()

    return {
        "package": package.to_dict(),
        "total_buyers": len({p.user_id for p in payments}),
        "total_revenue": sum(p.amount for p in payments),
        "payments": [
            {
                **p.to_dict(),
                "user_name": p.user.display_name if p.user else None,
                "user_email": p.user.email if p.user else None,
            }
            for p in payments
        ],
        "top_sessions": [
            {
                **s.to_dict(),
                "user_name": s.user.display_name if s.user else None,
            }
            for s in sessions
        ],
    }
