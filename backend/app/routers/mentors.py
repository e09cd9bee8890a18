"""
Mentors router for the SKD tryout backend.

- mentor applications from students
- back-office for verified mentors: own packages and questions, buyers,
  package stats
- balance, earnings and withdrawal requests
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import TentorProfile, User
from app.routers.deps import get_current_active_user, get_current_mentor_user, record_action
from app.schemas.mentor import MentorApplication, WithdrawalRequest
from app.schemas.package import PackageCreate, PackageUpdate, QuestionCreate, QuestionUpdate
from app.services import mentor_service, package_service, payment_service


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/apply", status_code=status.HTTP_201_CREATED)
async def apply_as_mentor(
    application: MentorApplication,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Submit a mentor application; an admin has to approve it.
    """
    profile = mentor_service.apply_for_mentor(db, current_user, application.model_dump())
    return profile.to_dict()


@router.get("/profile")
async def get_mentor_profile(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    profile = db.query(TentorProfile).filter(TentorProfile.user_id == current_user.id).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mentor profile not found"
        )
    return profile.to_dict()


# Own packages

@router.get("/packages")
async def list_my_packages(
    search: Optional[str] = None,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    packages = package_service.list_packages(db, creator_id=current_mentor.id, search=search)
    return {"packages": [p.to_dict() for p in packages], "total": len(packages)}


@router.post("/packages", status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    request: Request,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = package_service.create_package(db, package_data.model_dump(), current_mentor)
    record_action(
        db, request, current_mentor,
        action=AdminAction.CREATE,
        entity_type="package",
        entity_id=package.id,
        details={"package_title": package.title, "via": "mentor"},
    )
    db.commit()
    db.refresh(package)
    return package.to_dict()


@router.get("/packages/{package_id}")
async def get_package(
    package_id: int,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    return package.to_dict(include_questions=True)


@router.put("/packages/{package_id}")
async def update_package(
    package_id: int,
    package_update: PackageUpdate,
    request: Request,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    changes = package_service.update_package(db, package, package_update.model_dump(exclude_unset=True))

    if changes:
        record_action(
            db, request, current_mentor,
            action=AdminAction.UPDATE,
            entity_type="package",
            entity_id=package.id,
            details={"changes": changes, "via": "mentor"},
        )
    db.commit()
    db.refresh(package)
    return package.to_dict()


@router.post("/packages/{package_id}/toggle")
async def toggle_package(
    package_id: int,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    is_active = package_service.toggle_package(package)
    db.commit()
    return {"id": package.id, "is_active": is_active}


@router.delete("/packages/{package_id}")
async def delete_package(
    package_id: int,
    request: Request,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    title = package.title
    package_service.delete_package(db, package)
    record_action(
        db, request, current_mentor,
        action=AdminAction.DELETE,
        entity_type="package",
        entity_id=package_id,
        details={"package_title": title, "via": "mentor"},
    )
    db.commit()
    return {"message": "Package deleted successfully"}


@router.get("/packages/{package_id}/stats")
async def get_package_stats(
    package_id: int,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Buyers, revenue and best sessions of one of the mentor's packages.
    """
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    return payment_service.package_stats(db, package)


# Questions of own packages

@router.post("/packages/{package_id}/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    package_id: int,
    question_data: QuestionCreate,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    question = package_service.create_question(db, package, question_data.model_dump())
    db.commit()
    db.refresh(question)
    return question.to_dict(include_answer=True)


@router.put("/packages/{package_id}/questions/{question_id}")
async def update_question(
    package_id: int,
    question_id: int,
    question_update: QuestionUpdate,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    question = package_service.get_question_or_404(db, package, question_id)
    package_service.update_question(question, question_update.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(question)
    return question.to_dict(include_answer=True)


@router.delete("/packages/{package_id}/questions/{question_id}")
async def delete_question(
    package_id: int,
    question_id: int,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    package = mentor_service.get_owned_package(db, current_mentor, package_id)
    question = package_service.get_question_or_404(db, package, question_id)
    db.delete(question)
    db.commit()
    return {"message": "Question deleted successfully"}


@router.get("/buyers")
async def list_buyers(
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    buyers = mentor_service.list_buyers(db, current_mentor)
    return {"buyers": buyers, "total": len(buyers)}


# Balance and withdrawals

@router.get("/balance")
async def get_balance(
    withdrawals_page: int = Query(1, ge=1),
    earnings_page: int = Query(1, ge=1),
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Balance with paginated withdrawal and earning history.
    """
    return mentor_service.mentor_overview(
        db, current_mentor,
        withdrawals_page=withdrawals_page,
        earnings_page=earnings_page,
    )


@router.post("/withdrawals", status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    withdrawal_data: WithdrawalRequest,
    current_mentor: User = Depends(get_current_mentor_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Request a payout; the amount is held until an admin processes it.
    """
    withdrawal = mentor_service.request_withdrawal(
        db,
        current_mentor,
        amount=withdrawal_data.amount,
        bank_name=withdrawal_data.bank_name,
        account_number=withdrawal_data.account_number,
        account_holder=withdrawal_data.account_holder,
    )
    return withdrawal.to_dict()
