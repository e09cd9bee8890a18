"""
Tryout models for the SKD tryout backend.

Defines TryoutSession (one attempt at a package), UserAnswer (one row per
answered question) and QuestionTagStats (per-category aggregates written
when a session finishes).
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import (
    Boolean, Integer, String, DateTime, ForeignKey,
    UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.dates import isoformat


class SessionStatus(str, Enum):
    """Tryout session lifecycle."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AnswerStatus(str, Enum):
    """Per-question outcome shown in review."""
    CORRECT = "correct"
    WRONG = "wrong"
    UNANSWERED = "unanswered"


class TryoutSession(Base):
    """
    A user's attempt at a question package.
    """
    __tablename__ = "tryout_sessions"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="CASCADE"), nullable=False
    )

    # State
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.IN_PROGRESS.value, nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    auto_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Results
    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wrong_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unanswered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    passed_twk: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    passed_tiu: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    passed_tkp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    passed_overall: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="tryout_sessions")
    package = relationship("QuestionPackage", back_populates="sessions")
    answers = relationship("UserAnswer", back_populates="session", cascade="all, delete-orphan")
    tag_stats = relationship("QuestionTagStats", back_populates="session", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("status IN ('in_progress', 'completed')", name="check_session_status"),
        CheckConstraint("total_score >= 0", name="check_score_positive"),
        Index("idx_session_user_package_status", "user_id", "package_id", "status"),
        Index("idx_session_package_score", "package_id", "total_score"),
    )

    def __repr__(self) -> str:
        return f"<TryoutSession(id={self.id}, user_id={self.user_id}, package_id={self.package_id}, status='{self.status}')>"

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "package_id": self.package_id,
            "status": self.status,
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "auto_submitted": self.auto_submitted,
            "total_score": self.total_score,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "unanswered": self.unanswered,
            "passed_twk": self.passed_twk,
            "passed_tiu": self.passed_tiu,
            "passed_tkp": self.passed_tkp,
            "passed_overall": self.passed_overall,
        }


class UserAnswer(Base):
    """
    The answer a user gave to one question in one session.
    """
    __tablename__ = "user_answers"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tryout_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )

    # Answer data
    user_answer: Mapped[str] = mapped_column(String(1), nullable=False)
    awarded_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # Relationships
    session = relationship("TryoutSession", back_populates="answers")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_user_answer_session_question"),
        CheckConstraint("time_spent_seconds >= 0", name="check_time_spent_positive"),
    )

    def __repr__(self) -> str:
        return f"<UserAnswer(session_id={self.session_id}, question_id={self.question_id}, answer='{self.user_answer}')>"


class QuestionTagStats(Base):
    """
    Aggregated results of one session for one (main, sub) category pair.
    """
    __tablename__ = "question_tag_stats"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tryout_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="CASCADE"), nullable=False
    )

    # Category
    main_category: Mapped[str] = mapped_column(String(50), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(100), nullable=False)

    # Counts
    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wrong_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unanswered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timing
    total_time_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_time_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    session = relationship("TryoutSession", back_populates="tag_stats")

    __table_args__ = (
        UniqueConstraint(
            "session_id", "main_category", "sub_category", name="uq_tag_stats_session_category"
        ),
        Index("idx_tag_stats_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<QuestionTagStats(session_id={self.session_id}, tag='{self.main_category}/{self.sub_category}')>"

    @property
    def accuracy(self) -> float:
        """Percentage of correct answers within this category."""
        if self.total_questions == 0:
            return 0.0
        return round(self.correct_answers / self.total_questions * 100, 2)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "package_id": self.package_id,
            "main_category": self.main_category,
            "sub_category": self.sub_category,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "unanswered": self.unanswered,
            "total_points": self.total_points,
            "total_time_seconds": self.total_time_seconds,
            "average_time_seconds": self.average_time_seconds,
            "accuracy": self.accuracy,
        }
