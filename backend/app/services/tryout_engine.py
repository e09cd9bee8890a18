"""
Tryout session engine.

Handles the lifecycle of a tryout session:
- starting a new session or resuming the one in progress
- saving answers while time is left
- finishing (manually or when the timer runs out) and scoring
- review and history views of completed sessions

A session moves ``in_progress -> completed`` exactly once. Time left is
always derived from ``start_time`` and the package duration, so a session
that outlived its duration is finished the next time it is touched.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    BusinessRuleError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.package import (
    ANSWER_OPTIONS,
    MainCategory,
    Question,
    QuestionPackage,
)
from app.models.tryout import (
    AnswerStatus,
    QuestionTagStats,
    SessionStatus,
    TryoutSession,
    UserAnswer,
)
from app.models.user import User
from app.services.access import get_package_or_404, require_package_access
from app.utils.dates import ensure_aware, isoformat, utcnow


logger = logging.getLogger(__name__)

MAIN_CATEGORIES = [c.value for c in MainCategory]


@dataclass
class TagTotals:
    total_questions: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    unanswered: int = 0
    total_points: int = 0
    total_time_seconds: int = 0

    @property
    def average_time_seconds(self) -> int:
        if self.total_questions == 0:
            return 0
        return round(self.total_time_seconds / self.total_questions)


@dataclass
class SessionScore:
    """Outcome of scoring a set of answers against a package."""
    total_score: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    unanswered: int = 0
    category_points: Dict[str, int] = field(
        default_factory=lambda: {category: 0 for category in MAIN_CATEGORIES}
    )
    passed: Dict[str, bool] = field(default_factory=dict)
    tags: Dict[Tuple[str, str], TagTotals] = field(default_factory=dict)

    @property
    def passed_overall(self) -> bool:
        return bool(self.passed) and all(self.passed.values())


def normalize_answer(answer: Optional[str]) -> str:
    """Upper-case option letter; raises when it is not one of A-E."""
    value = (answer or "").strip().upper()
    if value not in ANSWER_OPTIONS:
        raise BusinessRuleError(f"Answer must be one of {', '.join(ANSWER_OPTIONS)}")
    return value


def score_answer(question: Question, answer: str) -> Tuple[int, bool]:
    """Points awarded and correctness for one chosen option."""
    return question.points_for(answer), answer == question.correct_answer


def score_session(
    questions: Iterable[Question],
    answers: Dict[int, UserAnswer],
    thresholds: Dict[str, int],
) -> SessionScore:
    """
    Aggregate answers over every question of a package.

    Answered questions add their awarded points and count as correct or
    wrong; questions without an answer count as unanswered. Points are also
    summed per main category and compared with ``thresholds``.
    """
    score = SessionScore()

    for question in questions:
        tag = score.tags.setdefault(question.tag_key, TagTotals())
        tag.total_questions += 1

        answer = answers.get(question.id)
        if answer is None:
            score.unanswered += 1
            tag.unanswered += 1
            continue

        points = answer.awarded_points or 0
        score.total_score += points
        tag.total_points += points
        tag.total_time_seconds += answer.time_spent_seconds or 0

        if answer.is_correct:
            score.correct_answers += 1
            tag.correct_answers += 1
        else:
            score.wrong_answers += 1
            tag.wrong_answers += 1

        if question.main_category in score.category_points:
            score.category_points[question.main_category] += points

    score.passed = {
        category: score.category_points[category] >= (thresholds.get(category) or 0)
        for category in MAIN_CATEGORIES
    }
    return score


def remaining_seconds(session: TryoutSession, package: QuestionPackage, now: Optional[datetime] = None) -> int:
    """Seconds left on the session timer, floored at 0."""
    if session.is_completed:
        return 0
    now = now or utcnow()
    elapsed = int((now - ensure_aware(session.start_time)).total_seconds())
    return max(0, package.duration_seconds - max(0, elapsed))


def format_time(seconds: int) -> str:
    """``H:MM:SS`` from one hour up, ``M:SS`` below."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _answers_by_question(db: Session, session_id: int) -> Dict[int, UserAnswer]:
    rows = db.query(UserAnswer).filter(UserAnswer.session_id == session_id).all()
    return {row.question_id: row for row in rows}


def _get_session(db: Session, session_id: int) -> TryoutSession:
    session = db.query(TryoutSession).filter(TryoutSession.id == session_id).first()
    if not session:
        raise NotFoundError("Tryout session not found")
    return session


def get_owned_session(db: Session, user: User, session_id: int, allow_admin: bool = False) -> TryoutSession:
    """Load a session owned by ``user`` (or any session for admins when allowed)."""
    session = _get_session(db, session_id)
    if session.user_id != user.id and not (allow_admin and user.is_admin):
        raise PermissionDeniedError("Not your tryout session")
    return session


def find_in_progress(db: Session, user_id: int, package_id: int) -> Optional[TryoutSession]:
    return db.query(TryoutSession).filter(
        TryoutSession.user_id == user_id,
        TryoutSession.package_id == package_id,
        TryoutSession.status == SessionStatus.IN_PROGRESS.value
    ).order_by(TryoutSession.start_time.desc()).first()


def finish_session(
    db: Session,
    session: TryoutSession,
    auto: bool = False,
    now: Optional[datetime] = None,
) -> TryoutSession:
    """
    Score and complete a session. Completed sessions are returned unchanged.
    """
    if session.is_completed:
        return session

    package = session.package
    answers = _answers_by_question(db, session.id)
    score = score_session(package.questions, answers, package.thresholds)

    session.status = SessionStatus.COMPLETED.value
    session.end_time = now or utcnow()
    session.auto_submitted = auto
    session.total_score = score.total_score
    session.correct_answers = score.correct_answers
    session.wrong_answers = score.wrong_answers
    session.unanswered = score.unanswered
    session.passed_twk = score.passed[MainCategory.TWK.value]
    session.passed_tiu = score.passed[MainCategory.TIU.value]
    session.passed_tkp = score.passed[MainCategory.TKP.value]
    session.passed_overall = score.passed_overall

    existing = {
        (row.main_category, row.sub_category): row
        for row in db.query(QuestionTagStats).filter(QuestionTagStats.session_id == session.id).all()
    }
    for (main_category, sub_category), totals in score.tags.items():
        row = existing.get((main_category, sub_category))
        if row is None:
            row = QuestionTagStats(
                session_id=session.id,
                user_id=session.user_id,
                package_id=session.package_id,
                main_category=main_category,
                sub_category=sub_category,
            )
            db.add(row)
        row.total_questions = totals.total_questions
        row.correct_answers = totals.correct_answers
        row.wrong_answers = totals.wrong_answers
        row.unanswered = totals.unanswered
        row.total_points = totals.total_points
        row.total_time_seconds = totals.total_time_seconds
        row.average_time_seconds = totals.average_time_seconds

    db.commit()
    db.refresh(session)

    logger.info(
        f"Tryout session {session.id} completed (auto={auto}): score={score.total_score} "
        f"correct={score.correct_answers} wrong={score.wrong_answers} "
        f"unanswered={score.unanswered} passed={score.passed_overall}"
    )
    return session


def _expire_if_needed(db: Session, session: TryoutSession, now: datetime) -> bool:
    """Auto-submit an in-progress session whose time has run out."""
    if session.is_completed:
        return False
    if remaining_seconds(session, session.package, now) > 0:
        return False
    logger.info(f"Tryout session {session.id} ran out of time, auto-submitting")
    finish_session(db, session, auto=True, now=now)
    return True


def session_result(session: TryoutSession) -> dict:
    """Score breakdown of a completed session."""
    package = session.package
    category_points = {category: 0 for category in MAIN_CATEGORIES}
    for row in session.tag_stats:
        if row.main_category in category_points:
            category_points[row.main_category] += row.total_points

    return {
        "session_id": session.id,
        "package_id": session.package_id,
        "package_title": package.title,
        "total_score": session.total_score,
        "correct_answers": session.correct_answers,
        "wrong_answers": session.wrong_answers,
        "unanswered": session.unanswered,
        "total_questions": package.question_count,
        "category_points": category_points,
        "thresholds": package.thresholds,
        "passed": {
            MainCategory.TWK.value: session.passed_twk,
            MainCategory.TIU.value: session.passed_tiu,
            MainCategory.TKP.value: session.passed_tkp,
        },
        "passed_overall": session.passed_overall,
        "auto_submitted": session.auto_submitted,
        "start_time": isoformat(session.start_time),
        "end_time": isoformat(session.end_time),
    }


def session_view(db: Session, session: TryoutSession, now: Optional[datetime] = None, resumed: bool = False) -> dict:
    """State the exam page needs to render a session."""
    package = session.package
    answers = _answers_by_question(db, session.id)
    questions = package.questions

    current_index = 0
    for index, question in enumerate(questions):
        if question.id not in answers:
            current_index = index
            break

    left = remaining_seconds(session, package, now)
    view = {
        "session": session.to_dict(),
        "package": package.to_dict(),
        "questions": [q.to_dict() for q in questions],
        "answers": {str(qid): row.user_answer for qid, row in answers.items()},
        "answered_count": len(answers),
        "current_question_index": current_index,
        "time_left_seconds": left,
        "time_left_display": format_time(left),
        "resumed": resumed,
    }
    if session.is_completed:
        view["result"] = session_result(session)
    return view


def start_or_resume(db: Session, user: User, package_id: int, now: Optional[datetime] = None) -> dict:
    """
    Resume the user's in-progress session for the package or start a new one.
    """
    now = now or utcnow()
    package = get_package_or_404(db, package_id, user)
    if not package.is_active:
        raise BusinessRuleError("Package is not active")
    require_package_access(db, user, package)
    if not package.questions:
        raise BusinessRuleError("Package has no questions yet")

    session = find_in_progress(db, user.id, package.id)
    if session:
        expired = _expire_if_needed(db, session, now)
        logger.info(f"Resuming tryout session {session.id} for user {user.id} (expired={expired})")
        return session_view(db, session, now, resumed=True)

    session = TryoutSession(
        user_id=user.id,
        package_id=package.id,
        status=SessionStatus.IN_PROGRESS.value,
        start_time=now,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Tryout session {session.id} started: user={user.id} package={package.id}")
    return session_view(db, session, now)


def get_state(db: Session, user: User, session_id: int, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    session = get_owned_session(db, user, session_id)
    _expire_if_needed(db, session, now)
    return session_view(db, session, now, resumed=True)


def save_answer(
    db: Session,
    user: User,
    session_id: int,
    question_id: int,
    answer: str,
    time_spent_seconds: int = 0,
    now: Optional[datetime] = None,
) -> dict:
    """
    Record or replace the answer to one question.

    Fails with 409 once the session is completed; a session whose time has
    run out is auto-submitted first.
    """
    now = now or utcnow()
    session = get_owned_session(db, user, session_id)
    if session.is_completed:
        raise InvalidStateError("Tryout session is already completed")
    if _expire_if_needed(db, session, now):
        raise InvalidStateError("Time is up, the tryout session has been submitted")

    value = normalize_answer(answer)
    question = db.query(Question).filter(
        Question.id == question_id,
        Question.package_id == session.package_id
    ).first()
    if not question:
        raise NotFoundError("Question not found in this package")

    points, is_correct = score_answer(question, value)
    spent = max(0, int(time_spent_seconds or 0))

    row = db.query(UserAnswer).filter(
        UserAnswer.session_id == session.id,
        UserAnswer.question_id == question.id
    ).first()
    if row is None:
        row = UserAnswer(session_id=session.id, question_id=question.id)
        db.add(row)
    row.user_answer = value
    row.awarded_points = points
    row.is_correct = is_correct
    row.time_spent_seconds = spent
    row.answered_at = now

    try:
        db.commit()
    except IntegrityError:
        # Concurrent first save of the same question; update the winner's row
        db.rollback()
        row = db.query(UserAnswer).filter(
            UserAnswer.session_id == session.id,
            UserAnswer.question_id == question.id
        ).one()
        row.user_answer = value
        row.awarded_points = points
        row.is_correct = is_correct
        row.time_spent_seconds = spent
        row.answered_at = now
        db.commit()

    left = remaining_seconds(session, session.package, now)
    logger.debug(f"Answer saved: session={session.id} question={question.id} answer={value}")
    return {
        "session_id": session.id,
        "question_id": question.id,
        "answer": value,
        "time_spent_seconds": spent,
        "time_left_seconds": left,
    }


def finish(db: Session, user: User, session_id: int, now: Optional[datetime] = None) -> dict:
    """Submit a session on the user's request and return its result."""
    session = get_owned_session(db, user, session_id)
    finish_session(db, session, auto=False, now=now)
    return session_result(session)


def review(db: Session, user: User, session_id: int) -> dict:
    """
    Per-question review of a completed session, answers and explanations
    included. Owners and admins only.
    """
    session = get_owned_session(db, user, session_id, allow_admin=True)
    if not session.is_completed:
        raise InvalidStateError("Review is only available after the tryout is finished")

    answers = _answers_by_question(db, session.id)
    items = []
    for number, question in enumerate(session.package.questions, start=1):
        answer = answers.get(question.id)
        if answer is None:
            answer_status = AnswerStatus.UNANSWERED.value
        elif answer.is_correct:
            answer_status = AnswerStatus.CORRECT.value
        else:
            answer_status = AnswerStatus.WRONG.value

        item = question.to_dict(include_answer=True)
        item.update({
            "number": number,
            "user_answer": answer.user_answer if answer else None,
            "awarded_points": answer.awarded_points if answer else 0,
            "time_spent_seconds": answer.time_spent_seconds if answer else 0,
            "status": answer_status,
        })
        items.append(item)

    return {
        "result": session_result(session),
        "questions": items,
        "tag_stats": [row.to_dict() for row in session.tag_stats],
    }


def history(db: Session, user: User) -> dict:
    """All sessions of a user, newest first, with summary statistics."""
    sessions: List[TryoutSession] = db.query(TryoutSession).filter(
        TryoutSession.user_id == user.id
    ).order_by(TryoutSession.start_time.desc(), TryoutSession.id.desc()).all()

    tag_rows = db.query(QuestionTagStats).filter(QuestionTagStats.user_id == user.id).all()
    points_by_session: Dict[int, Dict[str, int]] = defaultdict(
        lambda: {category: 0 for category in MAIN_CATEGORIES}
    )
    for row in tag_rows:
        if row.main_category in MAIN_CATEGORIES:
            points_by_session[row.session_id][row.main_category] += row.total_points

    items = []
    for session in sessions:
        item = session.to_dict()
        item["package_title"] = session.package.title if session.package else None
        if session.is_completed:
            item["category_points"] = dict(points_by_session[session.id])
        items.append(item)

    return {
        "sessions": items,
        "stats": history_stats(sessions),
        "tag_stats": [row.to_dict() for row in tag_rows],
    }


def history_stats(sessions: Iterable[TryoutSession]) -> dict:
    """Count, average, best score and accuracy over completed sessions."""
    completed = [s for s in sessions if s.is_completed]
    if not completed:
        return {"total_tryouts": 0, "average_score": 0, "highest_score": 0, "accuracy": 0}

    scores = [s.total_score for s in completed]
    correct = sum(s.correct_answers for s in completed)
    total_questions = sum(s.correct_answers + s.wrong_answers + s.unanswered for s in completed)
    return {
        "total_tryouts": len(completed),
        "average_score": round(sum(scores) / len(scores)),
        "highest_score": max(scores),
        "accuracy": round(correct / total_questions * 100) if total_questions else 0,
    }
