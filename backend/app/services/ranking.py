"""Leaderboard of completed sessions per package."""

from typing import Any, Dict

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.package import QuestionPackage
from app.models.tryout import SessionStatus, TryoutSession
from app.utils.dates import isoformat
from app.utils.pagination import paginate


def package_ranking(
    db: Session,
    package: QuestionPackage,
    page: int = 1,
    page_size: int = None,
) -> Dict[str, Any]:
    """
    Completed sessions ordered by score (ties: earlier finish first) with
    participant names, one page at a time, plus score statistics.
    """
    page_size = page_size or settings.DEFAULT_PAGE_SIZE
    sessions = db.query(TryoutSession).filter(
        TryoutSession.package_id == package.id,
        TryoutSession.status == SessionStatus.COMPLETED.value
    ).order_by(
        TryoutSession.total_score.desc(),
        TryoutSession.end_time.asc(),
        TryoutSession.id.asc()
    ).all()

    rows = [
        {
            "rank": rank,
            "session_id": s.id,
            "user_id": s.user_id,
            "user_name": s.user.display_name if s.user else "Unknown User",
            "total_score": s.total_score,
            "correct_answers": s.correct_answers,
            "passed_overall": s.passed_overall,
            "end_time": isoformat(s.end_time),
        }
        for rank, s in enumerate(sessions, start=1)
    ]

    scores = [s.total_score for s in sessions]
    stats = {
        "total_participants": len(scores),
        "average_score": round(sum(scores) / len(scores)) if scores else 0,
        "highest_score": max(scores) if scores else 0,
        "lowest_score": min(scores) if scores else 0,
    }

    return {
        "package_id": package.id,
        "package_title": package.title,
        "stats": stats,
        "ranking": paginate(rows, page, page_size),
    }
