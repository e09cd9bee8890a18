"""
Admin review of mentor applications.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import User
from app.routers.deps import get_current_admin_user, record_action
from app.services import mentor_service


router = APIRouter()


@router.get("/applications")
async def list_applications(
    pending_only: bool = True,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    profiles = mentor_service.list_applications(db, pending_only=pending_only)
    return {"applications": [p.to_dict() for p in profiles], "total": len(profiles)}


@router.post("/applications/{profile_id}/approve")
async def approve_application(
    profile_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Verify the profile and give its user the mentor role.
    """
    profile = mentor_service.get_profile_or_404(db, profile_id)
    mentor_service.approve_mentor(db, profile)
    record_action(
        db, request, current_admin,
        action=AdminAction.APPROVE,
        entity_type="tentor_profile",
        entity_id=profile.id,
        details={"user_id": profile.user_id},
    )
    db.commit()
    db.refresh(profile)
    return profile.to_dict()


@router.post("/applications/{profile_id}/reject")
async def reject_application(
    profile_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    profile = mentor_service.get_profile_or_404(db, profile_id)
    user_id = profile.user_id
    mentor_service.reject_mentor(db, profile)
    record_action(
        db, request, current_admin,
        action=AdminAction.REJECT,
        entity_type="tentor_profile",
        entity_id=profile_id,
        details={"user_id": user_id},
    )
    db.commit()
    return {"message": "Mentor application rejected"}
