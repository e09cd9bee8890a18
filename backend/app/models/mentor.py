"""
Mentor finance models for the SKD tryout backend.

Defines MentorBalance (running totals per mentor), MentorEarning (the
commission from one completed payment) and MentorWithdrawal (a payout
request reviewed by an admin).
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Set
from sqlalchemy import (
    Integer, String, DateTime, Text, ForeignKey,
    Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.dates import isoformat


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


# Allowed admin transitions of a withdrawal
WITHDRAWAL_TRANSITIONS: Dict[str, Set[str]] = {
    WithdrawalStatus.PENDING.value: {
        WithdrawalStatus.APPROVED.value,
        WithdrawalStatus.REJECTED.value,
    },
    WithdrawalStatus.APPROVED.value: {WithdrawalStatus.COMPLETED.value},
    WithdrawalStatus.REJECTED.value: set(),
    WithdrawalStatus.COMPLETED.value: set(),
}


class EarningStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class MentorBalance(Base):
    """
    Running balance of a mentor.

    ``available_balance`` excludes amounts reserved by pending or approved
    withdrawals.
    """
    __tablename__ = "mentor_balances"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    mentor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Totals (rupiah)
    total_earnings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_withdrawn: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # Relationships
    mentor = relationship("User")

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="check_available_positive"),
        CheckConstraint("total_withdrawn >= 0", name="check_withdrawn_positive"),
    )

    def __repr__(self) -> str:
        return f"<MentorBalance(mentor_id={self.mentor_id}, available={self.available_balance})>"

    def to_dict(self) -> dict:
        return {
            "mentor_id": self.mentor_id,
            "mentor_name": self.mentor.display_name if self.mentor else None,
            "total_earnings": self.total_earnings,
            "available_balance": self.available_balance,
            "total_withdrawn": self.total_withdrawn,
            "updated_at": isoformat(self.updated_at),
        }


class MentorEarning(Base):
    """
    Commission credited to a mentor for one completed payment.
    """
    __tablename__ = "mentor_earnings"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    mentor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    payment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("payments.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    package_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="SET NULL"), nullable=True
    )
    student_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Amounts
    payment_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_rate: Mapped[int] = mapped_column(Integer, nullable=False)  # percent
    commission_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=EarningStatus.APPROVED.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    package = relationship("QuestionPackage")
    student = relationship("User", foreign_keys=[student_id])

    __table_args__ = (
        Index("idx_earning_mentor_created", "mentor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<MentorEarning(mentor_id={self.mentor_id}, payment_id={self.payment_id}, amount={self.commission_amount})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "package_id": self.package_id,
            "package_title": self.package.title if self.package else None,
            "student_name": self.student.display_name if self.student else None,
            "payment_amount": self.payment_amount,
            "commission_rate": self.commission_rate,
            "commission_amount": self.commission_amount,
            "status": self.status,
            "created_at": isoformat(self.created_at),
        }


class MentorWithdrawal(Base):
    """
    Payout request from a mentor to a bank account.
    """
    __tablename__ = "mentor_withdrawals"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    mentor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Request
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_holder: Mapped[str] = mapped_column(String(255), nullable=False)

    # Review
    status: Mapped[str] = mapped_column(
        String(20), default=WithdrawalStatus.PENDING.value, nullable=False
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    mentor = relationship("User", foreign_keys=[mentor_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_withdrawal_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="check_withdrawal_status"
        ),
        Index("idx_withdrawal_status_created", "status", "created_at"),
        Index("idx_withdrawal_mentor", "mentor_id"),
    )

    def __repr__(self) -> str:
        return f"<MentorWithdrawal(id={self.id}, mentor_id={self.mentor_id}, amount={self.amount}, status='{self.status}')>"

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in WITHDRAWAL_TRANSITIONS.get(self.status, set())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "mentor_id": self.mentor_id,
            "mentor_name": self.mentor.display_name if self.mentor else None,
            "mentor_email": self.mentor.email if self.mentor else None,
            "amount": self.amount,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "account_holder": self.account_holder,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "processed_at": isoformat(self.processed_at),
            "processed_by": self.processed_by,
            "created_at": isoformat(self.created_at),
        }
