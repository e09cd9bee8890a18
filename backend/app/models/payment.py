"""
Payment models for the SKD tryout backend.

Defines Payment (a purchase attempt of a package through the gateway or a
free voucher path) and UserPackageAccess (the grant that unlocks a paid
package).
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


class PaymentStatus(str, Enum):
    """Payment lifecycle."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Payment(Base):
    """
    A package purchase.
    """
    __tablename__ = "payments"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="CASCADE"), nullable=False
    )
    voucher_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True
    )

    # Amounts (rupiah)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    original_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voucher_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # State
    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False
    )
    payment_method: Mapped[str] = mapped_column(String(50), default="midtrans", nullable=False)

    # Gateway data
    gateway_order_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    gateway_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    gateway_redirect_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    gateway_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Timestamps
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
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
    user = relationship("User", back_populates="payments", foreign_keys=[user_id])
    package = relationship("QuestionPackage")
    voucher = relationship("Voucher")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_amount_positive"),
        CheckConstraint("discount_amount >= 0", name="check_discount_positive"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="check_payment_status"
        ),
        Index("idx_payment_user_package_status", "user_id", "package_id", "status"),
        Index("idx_payment_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, user_id={self.user_id}, package_id={self.package_id}, status='{self.status}')>"

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "package_id": self.package_id,
            "package_title": self.package.title if self.package else None,
            "amount": self.amount,
            "original_amount": self.original_amount,
            "discount_amount": self.discount_amount,
            "voucher_code": self.voucher_code,
            "status": self.status,
            "payment_method": self.payment_method,
            "order_id": self.gateway_order_id,
            "token": self.gateway_token,
            "redirect_url": self.gateway_redirect_url,
            "gateway_status": self.gateway_status,
            "paid_at": isoformat(self.paid_at),
            "created_at": isoformat(self.created_at),
        }


class UserPackageAccess(Base):
    """
    Access grant of a paid package to a user.
    """
    __tablename__ = "user_package_access"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="CASCADE"), nullable=False
    )
    payment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    user = relationship("User")
    package = relationship("QuestionPackage")
    payment = relationship("Payment")

    __table_args__ = (
        UniqueConstraint("user_id", "package_id", name="uq_access_user_package"),
    )

    def __repr__(self) -> str:
        return f"<UserPackageAccess(user_id={self.user_id}, package_id={self.package_id}, active={self.is_active})>"
