"""
Voucher models for the SKD tryout backend.

Defines Voucher (a discount code) and VoucherUsage (one redemption tied
to a payment).
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text, ForeignKey,
    UniqueConstraint, Index, CheckConstraint, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.dates import isoformat


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Voucher(Base):
    """
    Discount voucher, optionally limited to some packages.
    """
    __tablename__ = "vouchers"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Identification
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Discount
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    min_purchase_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_discount_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Usage
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Validity window
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Package ids the voucher is limited to; empty means all packages
    applicable_packages: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)

    created_by: Mapped[Optional[int]] = mapped_column(
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
    usages = relationship("VoucherUsage", back_populates="voucher", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_discount_type"),
        CheckConstraint("discount_value > 0", name="check_discount_value_positive"),
        CheckConstraint("used_count >= 0", name="check_used_count_positive"),
        Index("idx_voucher_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Voucher(code='{self.code}', type='{self.discount_type}', value={self.discount_value})>"

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def applies_to(self, package_id: Optional[int]) -> bool:
        if not self.applicable_packages:
            return True
        return package_id is not None and package_id in self.applicable_packages

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "min_purchase_amount": self.min_purchase_amount,
            "max_discount_amount": self.max_discount_amount,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "is_active": self.is_active,
            "valid_from": isoformat(self.valid_from),
            "valid_until": isoformat(self.valid_until),
            "applicable_packages": self.applicable_packages or [],
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class VoucherUsage(Base):
    """
    A single redemption of a voucher.
    """
    __tablename__ = "voucher_usages"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Foreign keys
    voucher_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    package_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("question_packages.id", ondelete="SET NULL"), nullable=True
    )
    payment_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True
    )

    # Amounts (rupiah)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    original_price: Mapped[int] = mapped_column(Integer, nullable=False)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)

    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    voucher = relationship("Voucher", back_populates="usages")
    user = relationship("User")
    package = relationship("QuestionPackage")

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_voucher_usage_payment"),
        Index("idx_voucher_usage_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<VoucherUsage(voucher_id={self.voucher_id}, user_id={self.user_id}, payment_id={self.payment_id})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "voucher_id": self.voucher_id,
            "voucher_code": self.voucher.code if self.voucher else None,
            "voucher_name": self.voucher.name if self.voucher else None,
            "user_id": self.user_id,
            "user_name": self.user.display_name if self.user else None,
            "package_id": self.package_id,
            "package_title": self.package.title if self.package else None,
            "payment_id": self.payment_id,
            "discount_amount": self.discount_amount,
            "original_price": self.original_price,
            "final_price": self.final_price,
            "used_at": isoformat(self.used_at),
        }
