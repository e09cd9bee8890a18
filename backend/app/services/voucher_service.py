"""
Voucher validation, pricing and redemption, plus the admin CRUD helpers.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.models.voucher import DiscountType, Voucher, VoucherUsage
from app.utils.dates import ensure_aware, utcnow


logger = logging.getLogger(__name__)

# Columns that cannot be cleared through an update
NON_NULLABLE_FIELDS = (
    "code", "name", "discount_type", "discount_value",
    "min_purchase_amount", "is_active", "applicable_packages",
)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def get_voucher_by_code(db: Session, code: str) -> Optional[Voucher]:
    return db.query(Voucher).filter(Voucher.code == normalize_code(code)).first()


def compute_discount(voucher: Voucher, amount: int) -> int:
    """
    Discount in rupiah for ``amount``.

    Percentage vouchers are rounded half-up and capped by
    ``max_discount_amount``; the discount never exceeds the amount.
    """
    if voucher.discount_type == DiscountType.PERCENTAGE.value:
        discount = (amount * voucher.discount_value + 50) // 100
        if voucher.max_discount_amount:
            discount = min(discount, voucher.max_discount_amount)
    else:
        discount = voucher.discount_value
    return max(0, min(discount, amount))


def check_voucher(
    voucher: Optional[Voucher],
    amount: int,
    package_id: Optional[int] = None,
    now: Optional[datetime] = None,
    reserved: int = 0,
) -> Optional[str]:
    """
    Reason the voucher cannot be used, or None when it can.

    ``reserved`` counts uses held by payments that have not settled yet.
    """
    now = now or utcnow()
    if voucher is None:
        return "Voucher not found"
    if not voucher.is_active:
        return "Voucher is not active"
    if voucher.valid_from and ensure_aware(voucher.valid_from) > now:
        return "Voucher is not valid yet"
    if voucher.valid_until and ensure_aware(voucher.valid_until) < now:
        return "Voucher has expired"
    if voucher.usage_limit is not None and (voucher.used_count or 0) + reserved >= voucher.usage_limit:
        return "Voucher usage limit has been reached"
    if not voucher.applies_to(package_id):
        return "Voucher cannot be used for this package"
    if amount < (voucher.min_purchase_amount or 0):
        return f"Minimum purchase is Rp {voucher.min_purchase_amount:,}"
    return None


def pending_uses(db: Session, voucher: Voucher) -> int:
    """Pending payments holding the voucher; each will redeem it once it settles."""
    return db.query(Payment).filter(
        Payment.voucher_id == voucher.id,
        Payment.status == PaymentStatus.PENDING.value
    ).count()


def validate_voucher(
    db: Session,
    code: str,
    amount: int,
    package_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Check a voucher code against a purchase amount.

    Returns ``{"valid": False, "message": ...}`` when it cannot be used,
    otherwise the voucher details with discount and final price.
    """
    amount = int(round(amount))
    voucher = get_voucher_by_code(db, code)
    reserved = pending_uses(db, voucher) if voucher else 0
    reason = check_voucher(voucher, amount, package_id, now, reserved)
    if reason:
        logger.info(f"Voucher '{normalize_code(code)}' rejected: {reason}")
        return {"valid": False, "message": reason}

    discount = compute_discount(voucher, amount)
    return {
        "valid": True,
        "message": f"Voucher applied, discount Rp {discount:,}",
        "voucher_id": voucher.id,
        "voucher_code": voucher.code,
        "voucher_name": voucher.name,
        "discount_type": voucher.discount_type,
        "discount_value": voucher.discount_value,
        "discount_amount": discount,
        "original_price": amount,
        "final_price": amount - discount,
    }


def redeem_voucher(
    db: Session,
    voucher: Voucher,
    user_id: int,
    package_id: Optional[int],
    payment_id: Optional[int],
    discount_amount: int,
    original_price: int,
    final_price: int,
) -> VoucherUsage:
    """
    Record one use of a voucher for a payment. Repeated calls for the same
    payment return the existing usage. The caller commits.
    """
    if payment_id is not None:
        existing = db.query(VoucherUsage).filter(VoucherUsage.payment_id == payment_id).first()
        if existing:
            return existing

    usage = VoucherUsage(
        voucher_id=voucher.id,
        user_id=user_id,
        package_id=package_id,
        payment_id=payment_id,
        discount_amount=discount_amount,
        original_price=original_price,
        final_price=final_price,
        used_at=utcnow(),
    )
    db.add(usage)

    voucher.used_count = (voucher.used_count or 0) + 1
    if voucher.is_exhausted:
        voucher.is_active = False
        logger.info(f"Voucher '{voucher.code}' reached its usage limit and was deactivated")

    logger.info(f"Voucher '{voucher.code}' redeemed by user {user_id} (discount {discount_amount})")
    return usage


def check_discount_values(discount_type: str, discount_value: int) -> None:
    if discount_value is None or discount_value <= 0:
        raise BusinessRuleError("Discount value must be greater than 0")
    if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
        raise BusinessRuleError("Percentage discount cannot exceed 100")


def get_voucher_or_404(db: Session, voucher_id: int) -> Voucher:
    voucher = db.query(Voucher).filter(Voucher.id == voucher_id).first()
    if not voucher:
        raise NotFoundError("Voucher not found")
    return voucher


def list_vouchers(db: Session, active_only: bool = False, search: Optional[str] = None) -> List[Voucher]:
    query = db.query(Voucher)
    if active_only:
        query = query.filter(Voucher.is_active.is_(True))
    if search:
        term = f"%{search}%"
        query = query.filter(Voucher.code.ilike(term) | Voucher.name.ilike(term))
    return query.order_by(Voucher.created_at.desc(), Voucher.id.desc()).all()


def create_voucher(db: Session, data: Dict[str, Any], creator: User) -> Voucher:
    code = normalize_code(data["code"])
    if not code:
        raise BusinessRuleError("Voucher code is required")
    if get_voucher_by_code(db, code):
        raise BusinessRuleError("Voucher code already exists")
    discount_type = DiscountType(data["discount_type"]).value
    check_discount_values(discount_type, data["discount_value"])

    voucher = Voucher(**{**data, "code": code, "discount_type": discount_type}, created_by=creator.id, used_count=0)
    if voucher.applicable_packages is None:
        voucher.applicable_packages = []
    db.add(voucher)
    db.flush()
    logger.info(f"Voucher '{code}' created by user {creator.id}")
    return voucher


def update_voucher(db: Session, voucher: Voucher, data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply changed fields; returns ``{field: {"old", "new"}}`` for the audit log."""
    data = {k: v for k, v in data.items() if v is not None or k not in NON_NULLABLE_FIELDS}
    if "discount_type" in data:
        data["discount_type"] = DiscountType(data["discount_type"]).value
    if "code" in data and data["code"] is not None:
        code = normalize_code(data["code"])
        clash = db.query(Voucher).filter(Voucher.code == code, Voucher.id != voucher.id).first()
        if clash:
            raise BusinessRuleError("Voucher code already exists")
        data["code"] = code

    check_discount_values(
        data.get("discount_type") or voucher.discount_type,
        data["discount_value"] if "discount_value" in data else voucher.discount_value,
    )

    changes = {}
    for name, value in data.items():
        if hasattr(voucher, name) and getattr(voucher, name) != value:
            changes[name] = {"old": _jsonable(getattr(voucher, name)), "new": _jsonable(value)}
            setattr(voucher, name, value)
    return changes


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def voucher_stats(db: Session) -> Dict[str, int]:
    """Totals for the admin voucher dashboard."""
    total = db.query(Voucher).count()
    active = db.query(Voucher).filter(Voucher.is_active.is_(True)).count()
    total_usage = db.query(VoucherUsage).count()
    total_discount = db.query(func.coalesce(func.sum(VoucherUsage.discount_amount), 0)).scalar()
    return {
        "total_vouchers": total,
        "active_vouchers": active,
        "total_usage": total_usage,
        "total_discount": int(total_discount or 0),
    }


def usage_report(db: Session, voucher_id: Optional[int] = None, limit: int = 100) -> List[dict]:
    """Latest redemptions joined with voucher code and user name."""
    query = db.query(VoucherUsage)
    if voucher_id is not None:
        query = query.filter(VoucherUsage.voucher_id == voucher_id)
    rows = query.order_by(VoucherUsage.used_at.desc(), VoucherUsage.id.desc()).limit(limit).all()
    return [row.to_dict() for row in rows]


def user_history(db: Session, user: User) -> List[dict]:
    rows = db.query(VoucherUsage).filter(
        VoucherUsage.user_id == user.id
    ).order_by(VoucherUsage.used_at.desc(), VoucherUsage.id.desc()).all()
    return [row.to_dict() for row in rows]
