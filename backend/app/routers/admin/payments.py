"""
Admin payment listing.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.payment import Payment, PaymentStatus
from app.models.user import User


router = APIRouter()


@router.get("/")
async def list_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status: Optional[PaymentStatus] = None,
    package_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    All payments, filtered by status, package and buyer name, e-mail or order id.
    """
    query = db.query(Payment).join(User, Payment.user_id == User.id)
    if status:
        query = query.filter(Payment.status == status.value)
    if package_id is not None:
        query = query.filter(Payment.package_id == package_id)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                User.full_name.ilike(search_term),
                User.email.ilike(search_term),
                Payment.gateway_order_id.ilike(search_term),
            )
        )

    total = query.count()
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == PaymentStatus.COMPLETED.value
    ).scalar()
    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()).offset(skip).limit(limit).all()

    return {
        "payments": [
            {
                **p.to_dict(),
                "user_name": p.user.display_name if p.user else None,
                "package_title": p.package.title if p.package else None,
            }
            for p in payments
        ],
        "total": total,
        "skip": skip,
        "limit": limit,
        "total_revenue": int(revenue or 0),
    }
