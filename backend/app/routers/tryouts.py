"""
Tryouts router for the SKD tryout backend.

Exam endpoints: start or resume a session, read its state, save answers,
submit, review a finished attempt and list the caller's history.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.user import User
from app.routers.deps import get_current_active_user
from app.schemas.tryout import AnswerSubmit, TryoutStart
from app.services import tryout_engine


router = APIRouter()


@router.post("/start")
async def start_tryout(
    payload: TryoutStart,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Start a tryout or resume the one in progress for the package.

    A resumed session whose time has run out comes back already submitted.
    """
    return tryout_engine.start_or_resume(db, current_user, payload.package_id)


@router.get("/history")
async def tryout_history(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return tryout_engine.history(db, current_user)


@router.get("/{session_id}")
async def get_tryout_state(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return tryout_engine.get_state(db, current_user, session_id)


@router.post("/{session_id}/answers")
async def submit_answer(
    session_id: int,
    payload: AnswerSubmit,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Save or replace the answer to one question.
    """
    return tryout_engine.save_answer(
        db,
        current_user,
        session_id,
        question_id=payload.question_id,
        answer=payload.answer,
        time_spent_seconds=payload.time_spent_seconds,
    )


@router.post("/{session_id}/finish")
async def finish_tryout(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return tryout_engine.finish(db, current_user, session_id)


@router.get("/{session_id}/review")
async def review_tryout(
    session_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Question-by-question review with answer key and explanations.
    """
    return tryout_engine.review(db, current_user, session_id)
