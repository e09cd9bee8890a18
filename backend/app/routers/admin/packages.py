"""
Admin package and question management.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import User
from app.routers.deps import get_current_admin_user, record_action
from app.schemas.package import PackageCreate, PackageUpdate, QuestionCreate, QuestionUpdate
from app.services import package_service, payment_service
from app.services.access import get_package_or_404


router = APIRouter()


@router.get("/")
async def list_packages(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    List all packages, inactive ones included.
    """
    packages = package_service.list_packages(db, search=search, is_active=is_active)
    return {"packages": [p.to_dict() for p in packages], "total": len(packages)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = package_service.create_package(db, package_data.model_dump(), current_admin)
    record_action(
        db, request, current_admin,
        action=AdminAction.CREATE,
        entity_type="package",
        entity_id=package.id,
        details={"package_title": package.title},
    )
    db.commit()
    db.refresh(package)
    return package.to_dict()


@router.get("/{package_id}")
async def get_package(
    package_id: int,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_admin)
    return package.to_dict(include_questions=True)


@router.put("/{package_id}")
async def update_package(
    package_id: int,
    package_update: PackageUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_admin)
    changes = package_service.update_package(db, package, package_update.model_dump(exclude_unset=True))

    if changes:
        record_action(
            db, request, current_admin,
            action=AdminAction.UPDATE,
            entity_type="package",
            entity_id=package.id,
            details={"changes": changes},
        )
    db.commit()
    db.refresh(package)
    return package.to_dict()


@router.post("/{package_id}/toggle")
async def toggle_package(
    package_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Show or hide a package in the catalogue.
    """
    package = get_package_or_404(db, package_id, current_admin)
    is_active = package_service.toggle_package(package)
    record_action(
        db, request, current_admin,
        action=AdminAction.ACTIVATE if is_active else AdminAction.DEACTIVATE,
        entity_type="package",
        entity_id=package.id,
        details={"package_title": package.title},
    )
    db.commit()
    return {"id": package.id, "is_active": is_active}


@router.delete("/{package_id}")
async def delete_package(
    package_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    package = get_package_or_404(db, package_id, current_admin)
    title = package.title
    package_service.delete_package(db, package)
    record_action(
        db, request, current_admin,
        action=AdminAction.DELETE,
        entity_type="package",
        entity_id=package_id,
        details={"package_title": title},
    )
    db.commit()
    return {"message": "Package deleted successfully"}


@router.get("/{package_id}/stats")
async def get_package_stats(
    package_id: int,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_admin)
    return payment_service.package_stats(db, package)


@router.post("/{package_id}/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    package_id: int,
    question_data: QuestionCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_admin)
    question = package_service.create_question(db, package, question_data.model_dump())
    record_action(
        db, request, current_admin,
        action=AdminAction.CREATE,
        entity_type="question",
        entity_id=question.id,
        details={"package_id": package.id},
    )
    db.commit()
    db.refresh(question)
    return question.to_dict(include_answer=True)


@router.put("/{package_id}/questions/{question_id}")
async def update_question(
    package_id: int,
    question_id: int,
    question_update: QuestionUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = get_package_or_404(db, package_id, current_admin)
    question = package_service.get_question_or_404(db, package, question_id)
    changes = package_service.update_question(question, question_update.model_dump(exclude_unset=True))

    if changes:
        record_action(
            db, request, current_admin,
            action=AdminAction.UPDATE,
            entity_type="question",
            entity_id=question.id,
            details={"changes": changes},
        )
    db.commit()
    db.refresh(question)
    return question.to_dict(include_answer=True)


@router.delete("/{package_id}/questions/{question_id}")
async def delete_question(
    package_id: int,
    question_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    package = get_package_or_404(db, package_id, current_admin)
    question = package_service.get_question_or_404(db, package, question_id)
    db.delete(question)
    record_action(
        db, request, current_admin,
        action=AdminAction.DELETE,
        entity_type="question",
        entity_id=question_id,
        details={"package_id": package.id},
    )
    db.commit()
    return {"message": "Question deleted successfully"}
