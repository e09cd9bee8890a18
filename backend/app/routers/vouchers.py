"""
Vouchers router: checking a code before checkout and the caller's usage history.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.user import User
from app.routers.deps import get_current_active_user
from app.schemas.voucher import VoucherValidate
from app.services import voucher_service


router = APIRouter()


@router.post("/validate")
async def validate_voucher(
    payload: VoucherValidate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Check a voucher code against an amount and package.

    Always answers 200; ``valid`` and ``message`` say whether it applies.
    """
    return voucher_service.validate_voucher(
        db, payload.code, payload.amount, payload.package_id
    )


@router.get("/my-history")
async def my_voucher_history(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    usages = voucher_service.user_history(db, current_user)
    return {"usages": usages, "total": len(usages)}
