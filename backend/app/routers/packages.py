"""
Packages router for the SKD tryout backend.

Student-facing catalogue: active packages with access flags, the caller's
unlocked packages, package details and the per-package leaderboard.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.user import User
from app.routers.deps import get_current_active_user
from app.services import package_service
from app.services.access import get_package_or_404, has_package_access
from app.services.ranking import package_ranking
from app.services.tryout_engine import find_in_progress


router = APIRouter()


@router.get("/")
async def list_packages(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    List active packages with the caller's access and ongoing session.
    """
    packages = package_service.catalogue(db, current_user)
    return {"packages": packages, "total": len(packages)}


@router.get("/my")
async def my_packages(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Packages the caller can take right now.
    """
    packages = package_service.my_packages(db, current_user)
    return {"packages": packages, "total": len(packages)}


@router.get("/{package_id}")
async def get_package(
    package_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_user)
    ongoing = find_in_progress(db, current_user.id, package.id)

    data = package.to_dict()
    data["has_access"] = has_package_access(db, current_user, package)
    data["ongoing_session_id"] = ongoing.id if ongoing else None
    return data


@router.get("/{package_id}/ranking")
async def get_package_ranking(
    package_id: int,
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Leaderboard of completed sessions for a package.
    """
    package = get_package_or_404(db, package_id, current_user)
    return package_ranking(db, package, page=page)
