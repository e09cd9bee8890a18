"""
Payments router for the SKD tryout backend.

Handles package purchases through Midtrans Snap:
- creating a payment (free and full-discount purchases complete at once)
- listing the caller's payments
- refreshing a pending payment from the gateway
- the gateway's HTTP notification callback
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.models.payment import PaymentStatus
from app.models.user import User
from app.routers.deps import get_current_active_user, get_payment_gateway
from app.schemas.payment import PaymentCreate
from app.services import payment_service
from app.services.midtrans import MidtransClient


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    current_user: User = Depends(get_current_active_user),
    gateway: Optional[MidtransClient] = Depends(get_payment_gateway),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Buy a package, optionally with a voucher.

    Returns the Snap token and redirect url for pending payments together
    with the client key the frontend needs to open the Snap popup.
    """
    payment = await payment_service.create_payment(
        db,
        current_user,
        payload.package_id,
        gateway=gateway,
        voucher_code=payload.voucher_code,
        payment_method=payload.payment_method,
    )
    return {
        "payment": payment.to_dict(),
        "client_key": settings.MIDTRANS_CLIENT_KEY,
        "snap_url": settings.midtrans_snap_url,
    }


@router.get("/my")
async def my_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    payments = payment_service.list_user_payments(
        db, current_user, status_filter.value if status_filter else None
    )
    return {"payments": [p.to_dict() for p in payments], "total": len(payments)}


@router.get("/pending")
async def pending_payments(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Payments still waiting for the gateway.
    """
    payments = payment_service.list_user_payments(db, current_user, PaymentStatus.PENDING.value)
    return {"payments": [p.to_dict() for p in payments], "total": len(payments)}


@router.post("/midtrans/notification")
async def midtrans_notification(
    payload: Dict[str, Any] = Body(...),
    gateway: Optional[MidtransClient] = Depends(get_payment_gateway),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Gateway callback; the signature is checked before anything is applied.
    """
    payment = payment_service.handle_notification(db, payload, gateway)
    logger.info(
        f"Gateway notification for {payment.gateway_order_id}: "
        f"{payload.get('transaction_status')} -> {payment.status}"
    )
    return {"status": "ok", "payment_status": payment.status}


@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    payment = payment_service.get_payment_for_user(db, current_user, payment_id)
    return payment.to_dict()


@router.post("/{payment_id}/refresh-status")
async def refresh_payment_status(
    payment_id: int,
    current_user: User = Depends(get_current_active_user),
    gateway: Optional[MidtransClient] = Depends(get_payment_gateway),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Pull the latest transaction status from the gateway.
    """
    payment = payment_service.get_payment_for_user(db, current_user, payment_id)
    payment = await payment_service.refresh_status(db, payment, gateway)
    return payment.to_dict()
