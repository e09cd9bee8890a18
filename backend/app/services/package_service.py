"""
Package and question management shared by the admin and mentor back-office,
plus the catalogue views students see.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleError, NotFoundError
from app.models.package import Question, QuestionPackage
from app.models.tryout import SessionStatus, TryoutSession
from app.models.user import User
from app.services.access import accessible_package_ids
from app.utils.dates import isoformat


logger = logging.getLogger(__name__)

# Columns that cannot be cleared through an update
PACKAGE_NON_NULLABLE_FIELDS = (
    "title", "description", "duration_minutes", "price", "original_price",
    "discount_percentage", "requires_payment", "is_active",
    "threshold_twk", "threshold_tiu", "threshold_tkp", "threshold_non_tag",
)
QUESTION_NON_NULLABLE_FIELDS = (
    "question_text", "option_a", "option_b", "option_c", "option_d", "option_e",
    "points_a", "points_b", "points_c", "points_d", "points_e",
    "correct_answer", "order_index",
)


def _check_pricing(package: QuestionPackage) -> None:
    if (package.discount_percentage or 0) > 0 and (package.original_price or 0) <= 0:
        raise BusinessRuleError("original_price is required when a discount is set")


def _apply_changes(entity: Any, data: Dict[str, Any], non_nullable=()) -> Dict[str, Any]:
    """
    Set changed attributes and return them as ``{field: {old, new}}``.

    ``None`` for a field in ``non_nullable`` means "leave unchanged".
    """
    changes = {}
    for field, value in data.items():
        if value is None and field in non_nullable:
            continue
        if hasattr(entity, field) and getattr(entity, field) != value:
            changes[field] = {"old": getattr(entity, field), "new": value}
            setattr(entity, field, value)
    return changes


def list_packages(
    db: Session,
    creator_id: Optional[int] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[QuestionPackage]:
    query = db.query(QuestionPackage)
    if creator_id is not None:
        query = query.filter(QuestionPackage.creator_id == creator_id)
    if is_active is not None:
        query = query.filter(QuestionPackage.is_active.is_(is_active))
    if search:
        term = f"%{search}%"
        query = query.filter(
            or_(QuestionPackage.title.ilike(term), QuestionPackage.description.ilike(term))
        )
    return query.order_by(QuestionPackage.created_at.desc(), QuestionPackage.id.desc()).all()


def create_package(db: Session, data: Dict[str, Any], creator: User) -> QuestionPackage:
    """Add a package owned by ``creator``; the caller commits."""
    package = QuestionPackage(**data, creator_id=creator.id)
    _check_pricing(package)
    db.add(package)
    db.flush()
    logger.info(f"Package {package.id} created by user {creator.id}")
    return package


def update_package(db: Session, package: QuestionPackage, data: Dict[str, Any]) -> Dict[str, Any]:
    changes = _apply_changes(package, data, PACKAGE_NON_NULLABLE_FIELDS)
    _check_pricing(package)
    return changes


def toggle_package(package: QuestionPackage) -> bool:
    package.is_active = not package.is_active
    return package.is_active


def delete_package(db: Session, package: QuestionPackage) -> None:
    """Delete a package; refused while someone is taking it."""
    ongoing = db.query(TryoutSession).filter(
        TryoutSession.package_id == package.id,
        TryoutSession.status == SessionStatus.IN_PROGRESS.value
    ).count()
    if ongoing:
        raise BusinessRuleError(f"Cannot delete package with {ongoing} tryout sessions in progress")
    db.delete(package)


def get_question_or_404(db: Session, package: QuestionPackage, question_id: int) -> Question:
    question = db.query(Question).filter(
        Question.id == question_id,
        Question.package_id == package.id
    ).first()
    if not question:
        raise NotFoundError("Question not found")
    return question


def create_question(db: Session, package: QuestionPackage, data: Dict[str, Any]) -> Question:
    """Add a question; without an explicit position it goes last."""
    if data.get("order_index") is None:
        last = db.query(func.max(Question.order_index)).filter(
            Question.package_id == package.id
        ).scalar()
        data = dict(data, order_index=(last or 0) + 1)
    question = Question(**data, package_id=package.id)
    db.add(question)
    db.flush()
    db.refresh(package)
    return question


def update_question(question: Question, data: Dict[str, Any]) -> Dict[str, Any]:
    return _apply_changes(question, data, QUESTION_NON_NULLABLE_FIELDS)


def catalogue(db: Session, user: User) -> List[Dict[str, Any]]:
    """
    Active packages with the caller's access flag and the id of the
    session they have in progress, if any.
    """
    packages = list_packages(db, is_active=True)
    unlocked = accessible_package_ids(db, user)
    ongoing = {
        package_id: session_id
        for session_id, package_id in db.query(TryoutSession.id, TryoutSession.package_id).filter(
            TryoutSession.user_id == user.id,
            TryoutSession.status == SessionStatus.IN_PROGRESS.value
        ).all()
    }

    items = []
    for package in packages:
        item = package.to_dict()
        item["has_access"] = (
            not package.requires_payment
            or user.is_admin
            or package.creator_id == user.id
            or package.id in unlocked
        )
        item["ongoing_session_id"] = ongoing.get(package.id)
        items.append(item)
    return items


def my_packages(db: Session, user: User) -> List[Dict[str, Any]]:
    """Catalogue entries the caller can take, with their last completed attempt."""
    items = [item for item in catalogue(db, user) if item["has_access"]]
    for item in items:
        last = db.query(TryoutSession).filter(
            TryoutSession.user_id == user.id,
            TryoutSession.package_id == item["id"],
            TryoutSession.status == SessionStatus.COMPLETED.value
        ).order_by(TryoutSession.end_time.desc()).first()
        item["last_score"] = last.total_score if last else None
        item["last_attempt_at"] = isoformat(last.end_time) if last else None
    return items
