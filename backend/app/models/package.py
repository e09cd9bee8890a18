"""
Question package models for the SKD tryout backend.

Defines QuestionPackage (a purchasable timed exam) and Question (a
five-option item with per-option points and a main/sub category).
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text, ForeignKey,
    Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.dates import isoformat


ANSWER_OPTIONS = ("A", "B", "C", "D", "E")


class MainCategory(str, Enum):
    """SKD sub-tests; questions outside these count as non-tagged."""
    TWK = "TWK"
    TIU = "TIU"
    TKP = "TKP"


NON_TAG_CATEGORY = "Non Tag"
DEFAULT_SUB_CATEGORY = "Umum"


class QuestionPackage(Base):
    """
    A tryout package: a timed set of questions with pass thresholds.
    """
    __tablename__ = "question_packages"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Basic information
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    # Pricing (rupiah)
    price: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    original_price: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requires_payment: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Visibility
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Pass thresholds per main category
    threshold_twk: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    threshold_tiu: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    threshold_tkp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    threshold_non_tag: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Ownership
    creator_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

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
    creator = relationship("User", foreign_keys=[creator_id])
    questions = relationship(
        "Question",
        back_populates="package",
        cascade="all, delete-orphan",
        order_by=lambda: [Question.order_index, Question.id]
    )
    sessions = relationship("TryoutSession", back_populates="package", cascade="all, delete-orphan")

    # Table constraints
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_positive"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="check_discount_range"
        ),
        Index("idx_package_active", "is_active"),
        Index("idx_package_creator", "creator_id"),
    )

    def __repr__(self) -> str:
        return f"<QuestionPackage(id={self.id}, title='{self.title}')>"

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def thresholds(self) -> Dict[str, int]:
        """Pass threshold per main category (0 when unset)."""
        return {
            MainCategory.TWK.value: self.threshold_twk or 0,
            MainCategory.TIU.value: self.threshold_tiu or 0,
            MainCategory.TKP.value: self.threshold_tkp or 0,
        }

    def to_dict(self, include_questions: bool = False) -> dict:
        """Convert package to dictionary representation."""
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "price": self.price,
            "original_price": self.original_price,
            "discount_percentage": self.discount_percentage,
            "requires_payment": self.requires_payment,
            "is_active": self.is_active,
            "threshold_twk": self.threshold_twk,
            "threshold_tiu": self.threshold_tiu,
            "threshold_tkp": self.threshold_tkp,
            "threshold_non_tag": self.threshold_non_tag,
            "creator_id": self.creator_id,
            "question_count": self.question_count,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_questions:
            data["questions"] = [q.to_dict(include_answer=True) for q in self.questions]
        return data


class Question(Base):
    """
    A multiple-choice question with options A-E.

    Every option carries its own points so TKP items (graded 1-5) and
    TWK/TIU items (one correct option) share the same scoring rule.
    """
    __tablename__ = "questions"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Package relationship
    package_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="CASCADE"), nullable=False
    )
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Content
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    option_d: Mapped[str] = mapped_column(Text, nullable=False)
    option_e: Mapped[str] = mapped_column(Text, nullable=False)

    # Scoring
    points_a: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points_b: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points_c: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points_d: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points_e: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_answer: Mapped[str] = mapped_column(String(1), nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    main_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sub_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Images
    question_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_a_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_b_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_c_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_d_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_e_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    explanation_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

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
    package = relationship("QuestionPackage", back_populates="questions")

    __table_args__ = (
        CheckConstraint(
            "correct_answer IN ('A', 'B', 'C', 'D', 'E')", name="check_correct_answer"
        ),
        Index("idx_question_package_order", "package_id", "order_index"),
        Index("idx_question_category", "main_category", "sub_category"),
    )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, package_id={self.package_id}, category='{self.main_category}')>"

    def points_for(self, answer: Optional[str]) -> int:
        """Points awarded for choosing ``answer``; 0 for unknown options."""
        if not answer or answer.upper() not in ANSWER_OPTIONS:
            return 0
        return getattr(self, f"points_{answer.lower()}") or 0

    @property
    def options(self) -> Dict[str, str]:
        return {label: getattr(self, f"option_{label.lower()}") for label in ANSWER_OPTIONS}

    @property
    def option_points(self) -> Dict[str, int]:
        return {label: self.points_for(label) for label in ANSWER_OPTIONS}

    @property
    def option_images(self) -> Dict[str, Optional[str]]:
        return {
            label: getattr(self, f"option_{label.lower()}_image_url") for label in ANSWER_OPTIONS
        }

    @property
    def tag_key(self) -> tuple:
        """(main, sub) category with defaults for untagged questions."""
        return (
            self.main_category or NON_TAG_CATEGORY,
            self.sub_category or DEFAULT_SUB_CATEGORY,
        )

    def to_dict(self, include_answer: bool = False) -> dict:
        """
        Convert question to dictionary representation.

        Answer key, points and explanation are only included for staff views
        and completed-session review.
        """
        data = {
            "id": self.id,
            "package_id": self.package_id,
            "order_index": self.order_index,
            "question_text": self.question_text,
            "options": self.options,
            "main_category": self.main_category,
            "sub_category": self.sub_category,
            "question_image_url": self.question_image_url,
            "option_images": self.option_images,
        }
        if include_answer:
            data.update({
                "option_points": self.option_points,
                "correct_answer": self.correct_answer,
                "explanation": self.explanation,
                "explanation_image_url": self.explanation_image_url,
            })
        return data
