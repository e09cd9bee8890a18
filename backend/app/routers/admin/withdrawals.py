"""
Admin processing of mentor withdrawals and the balance overview.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.mentor import WithdrawalStatus
from app.models.user import User
from app.routers.deps import get_current_admin_user, record_action
from app.schemas.mentor import WithdrawalAction
from app.services import mentor_service


router = APIRouter()

_ACTIONS = {
    WithdrawalStatus.APPROVED.value: AdminAction.APPROVE,
    WithdrawalStatus.REJECTED.value: AdminAction.REJECT,
    WithdrawalStatus.COMPLETED.value: AdminAction.COMPLETE,
}


@router.get("/")
async def list_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Withdrawals filtered by status and by mentor name, bank or account holder.
    """
    withdrawals = mentor_service.list_withdrawals(
        db, status_filter=status.value if status else None, search=search
    )
    return {
        "withdrawals": [w.to_dict() for w in withdrawals],
        "total": len(withdrawals),
        "counts": mentor_service.withdrawal_counts(db),
    }


@router.get("/balances")
async def list_balances(db: Session = Depends(get_db)) -> Dict[str, Any]:
    balances = mentor_service.list_balances(db)
    return {"balances": [b.to_dict() for b in balances], "total": len(balances)}


@router.post("/{withdrawal_id}/action")
async def process_withdrawal(
    withdrawal_id: int,
    action: WithdrawalAction,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Approve, reject or complete a withdrawal.
    """
    withdrawal = mentor_service.get_withdrawal_or_404(db, withdrawal_id)
    old_status = withdrawal.status
    mentor_service.process_withdrawal(
        db, withdrawal, action.status.value, current_admin, action.admin_notes
    )
    record_action(
        db, request, current_admin,
        action=_ACTIONS.get(action.status.value, AdminAction.UPDATE),
        entity_type="mentor_withdrawal",
        entity_id=withdrawal.id,
        details={
            "status": {"old": old_status, "new": withdrawal.status},
            "amount": withdrawal.amount,
        },
    )
    db.commit()
    db.refresh(withdrawal)
    return withdrawal.to_dict()
