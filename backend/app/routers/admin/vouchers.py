"""
Admin voucher management: CRUD, statistics and usage reports.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import User
from app.routers.deps import get_current_admin_user, record_action
from app.schemas.voucher import VoucherCreate, VoucherUpdate
from app.services import voucher_service


router = APIRouter()


@router.get("/")
async def list_vouchers(
    active_only: bool = False,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    vouchers = voucher_service.list_vouchers(db, active_only=active_only, search=search)
    return {"vouchers": [v.to_dict() for v in vouchers], "total": len(vouchers)}


@router.get("/stats")
async def get_voucher_stats(db: Session = Depends(get_db)) -> Dict[str, int]:
    return voucher_service.voucher_stats(db)


@router.get("/usages")
async def list_voucher_usages(
    voucher_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Latest redemptions with voucher code and user name.
    """
    usages = voucher_service.usage_report(db, voucher_id=voucher_id, limit=limit)
    return {"usages": usages, "total": len(usages)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_voucher(
    voucher_data: VoucherCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    voucher = voucher_service.create_voucher(db, voucher_data.model_dump(), current_admin)
    record_action(
        db, request, current_admin,
        action=AdminAction.CREATE,
        entity_type="voucher",
        entity_id=voucher.id,
        details={"code": voucher.code},
    )
    db.commit()
    db.refresh(voucher)
    return voucher.to_dict()


@router.get("/{voucher_id}")
async def get_voucher(
    voucher_id: int,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return voucher_service.get_voucher_or_404(db, voucher_id).to_dict()


@router.put("/{voucher_id}")
async def update_voucher(
    voucher_id: int,
    voucher_update: VoucherUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    voucher = voucher_service.get_voucher_or_404(db, voucher_id)
    changes = voucher_service.update_voucher(db, voucher, voucher_update.model_dump(exclude_unset=True))

    if changes:
        record_action(
            db, request, current_admin,
            action=AdminAction.UPDATE,
            entity_type="voucher",
            entity_id=voucher.id,
            details={"changes": changes},
        )
    db.commit()
    db.refresh(voucher)
    return voucher.to_dict()


@router.delete("/{voucher_id}")
async def delete_voucher(
    voucher_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    voucher = voucher_service.get_voucher_or_404(db, voucher_id)
    code = voucher.code
    db.delete(voucher)
    record_action(
        db, request, current_admin,
        action=AdminAction.DELETE,
        entity_type="voucher",
        entity_id=voucher_id,
        details={"code": code},
    )
    db.commit()
    return {"message": "Voucher deleted successfully"}
