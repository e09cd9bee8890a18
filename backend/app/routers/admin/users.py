"""
Admin user management: search and account activation.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import User, UserRole
from app.routers.deps import get_current_admin_user, record_action
from app.schemas.admin import UserStatusUpdate


router = APIRouter()


@router.get("/")
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role.value)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(User.full_name.ilike(search_term), User.email.ilike(search_term))
        )

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()
    return {
        "users": [u.to_dict() for u in users],
        "total": total,
        "skip": skip,
        "limit": limit,
    }


@router.put("/{user_id}/status")
async def update_user_status(
    user_id: int,
    status_update: UserStatusUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Activate or deactivate an account. Admins cannot deactivate themselves.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if user.id == current_admin.id and not status_update.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account"
        )

    old_value = user.is_active
    user.is_active = status_update.is_active
    record_action(
        db, request, current_admin,
        action=AdminAction.ACTIVATE if user.is_active else AdminAction.DEACTIVATE,
        entity_type="user",
        entity_id=user.id,
        details={"is_active": {"old": old_value, "new": user.is_active}},
    )
    db.commit()
    db.refresh(user)
    return user.to_dict()
