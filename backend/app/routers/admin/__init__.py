"""
Admin routers for the SKD tryout backend.

This module contains all admin-specific API endpoints:
- packages: package and question management
- vouchers: voucher CRUD, stats and usage reports
- withdrawals: mentor withdrawal processing and balances
- mentors: mentor application review
- users: user search and activation
- payments: payment listing
plus the dashboard, system settings and audit log endpoints below.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction, AdminLog, SystemSettings
from app.models.mentor import MentorWithdrawal, WithdrawalStatus
from app.models.package import Question, QuestionPackage
from app.models.payment import Payment, PaymentStatus
from app.models.tryout import SessionStatus, TryoutSession
from app.models.user import TentorProfile, User, UserRole
from app.routers.deps import get_current_admin_user, record_action
from app.schemas.admin import SettingUpdate
from app.services import voucher_service
from app.utils.dates import isoformat

# Import admin sub-routers
from .packages import router as packages_router
from .vouchers import router as vouchers_router
from .withdrawals import router as withdrawals_router
from .mentors import router as mentors_router
from .users import router as users_router
from .payments import router as payments_router


# Create admin router
admin_router = APIRouter()

# Include all admin sub-routers
admin_router.include_router(
    packages_router,
    prefix="/packages",
    tags=["admin-packages"],
    dependencies=[Depends(get_current_admin_user)]
)

admin_router.include_router(
    vouchers_router,
    prefix="/vouchers",
    tags=["admin-vouchers"],
    dependencies=[Depends(get_current_admin_user)]
)

admin_router.include_router(
    withdrawals_router,
    prefix="/withdrawals",
    tags=["admin-withdrawals"],
    dependencies=[Depends(get_current_admin_user)]
)

admin_router.include_router(
    mentors_router,
    prefix="/mentors",
    tags=["admin-mentors"],
    dependencies=[Depends(get_current_admin_user)]
)

admin_router.include_router(
    users_router,
    prefix="/users",
    tags=["admin-users"],
    dependencies=[Depends(get_current_admin_user)]
)

admin_router.include_router(
    payments_router,
    prefix="/payments",
    tags=["admin-payments"],
    dependencies=[Depends(get_current_admin_user)]
)


# Admin dashboard endpoint
@admin_router.get("/dashboard")
async def get_admin_dashboard(
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Get admin dashboard overview with statistics.
    """
    total_users = db.query(User).count()
    students = db.query(User).filter(User.role == UserRole.STUDENT.value).count()
    mentors = db.query(User).filter(User.role == UserRole.TENTOR.value).count()

    active_packages = db.query(QuestionPackage).filter(QuestionPackage.is_active.is_(True)).count()
    inactive_packages = db.query(QuestionPackage).filter(QuestionPackage.is_active.is_(False)).count()
    total_questions = db.query(Question).count()

    sessions_in_progress = db.query(TryoutSession).filter(
        TryoutSession.status == SessionStatus.IN_PROGRESS.value
    ).count()
    sessions_completed = db.query(TryoutSession).filter(
        TryoutSession.status == SessionStatus.COMPLETED.value
    ).count()

    completed_payments = db.query(Payment).filter(
        Payment.status == PaymentStatus.COMPLETED.value
    ).count()
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == PaymentStatus.COMPLETED.value
    ).scalar()

    pending_withdrawals = db.query(MentorWithdrawal).filter(
        MentorWithdrawal.status == WithdrawalStatus.PENDING.value
    ).count()
    pending_applications = db.query(TentorProfile).filter(
        TentorProfile.is_verified.is_(False)
    ).count()

    return {
        "statistics": {
            "users": {
                "total": total_users,
                "students": students,
                "mentors": mentors
            },
            "packages": {
                "active": active_packages,
                "inactive": inactive_packages,
                "questions": total_questions
            },
            "sessions": {
                "in_progress": sessions_in_progress,
                "completed": sessions_completed
            },
            "payments": {
                "completed": completed_payments,
                "revenue": int(revenue or 0)
            },
            "pending_withdrawals": pending_withdrawals,
            "pending_mentor_applications": pending_applications,
            "vouchers": voucher_service.voucher_stats(db)
        },
        "recent_activity": {
            "last_login": isoformat(admin_user.last_login_at)
        }
    }


# System settings endpoints
@admin_router.get("/settings")
async def get_system_settings(
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Get all system settings grouped by category.
    """
    settings = db.query(SystemSettings).order_by(SystemSettings.key).all()

    settings_by_category: Dict[str, list] = {}
    for setting in settings:
        settings_by_category.setdefault(setting.category, []).append(setting.to_dict())

    return settings_by_category


@admin_router.put("/settings/{setting_key}")
async def update_system_setting(
    setting_key: str,
    update: SettingUpdate,
    request: Request,
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Update a system setting.
    """
    setting = db.query(SystemSettings).filter(
        SystemSettings.key == setting_key
    ).first()

    if not setting:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Setting not found"
        )

    if not setting.is_editable:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This setting cannot be edited"
        )

    error = setting.validate_value(update.value)
    if error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error
        )

    old_value = setting.get_typed_value()
    setting.set_typed_value(update.value)
    setting.last_modified_by = admin_user.id

    record_action(
        db, request, admin_user,
        action=AdminAction.SETTINGS_CHANGE,
        entity_type="system_settings",
        entity_id=setting.id,
        details={
            "setting_key": setting_key,
            "old_value": old_value,
            "new_value": setting.get_typed_value()
        },
    )
    db.commit()
    db.refresh(setting)

    return {
        "message": "Setting updated successfully",
        "setting": setting.to_dict()
    }


# Admin logs endpoint
@admin_router.get("/logs")
async def get_admin_logs(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get audit log entries with filtering.
    """
    query = db.query(AdminLog)

    if action:
        query = query.filter(AdminLog.action == action)
    if entity_type:
        query = query.filter(AdminLog.entity_type == entity_type)

    total = query.count()
    logs = query.order_by(
        AdminLog.created_at.desc(), AdminLog.id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "total": total,
        "skip": skip,
        "limit": limit,
        "logs": [log.to_dict() for log in logs]
    }


# Export all routers
__all__ = ["admin_router"]
