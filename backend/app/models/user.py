"""
User models for the SKD tryout backend.

Defines the User table with authentication fields and role, and the
TentorProfile table holding a mentor application / profile.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text, ForeignKey,
    Index, CheckConstraint, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.utils.dates import isoformat


class UserRole(str, Enum):
    """Roles a user account can have."""
    STUDENT = "student"
    TENTOR = "tentor"
    ADMIN = "admin"


class User(Base):
    """
    User model for authentication and profile management.
    """
    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile fields
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Status fields
    role: Mapped[str] = mapped_column(String(20), default=UserRole.STUDENT.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    subscription_status: Mapped[str] = mapped_column(String(20), default="inactive", nullable=False)

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
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    tentor_profile = relationship(
        "TentorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    tryout_sessions = relationship("TryoutSession", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", foreign_keys="Payment.user_id")
    admin_logs = relationship("AdminLog", back_populates="user", cascade="all, delete-orphan")

    # Table constraints
    __table_args__ = (
        CheckConstraint("role IN ('student', 'tentor', 'admin')", name="check_user_role"),
        Index("idx_user_email_active", "email", "is_active"),
        Index("idx_user_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def display_name(self) -> str:
        """Full name, falling back to the e-mail address."""
        return self.full_name or self.email

    @property
    def is_tentor(self) -> bool:
        return self.role == UserRole.TENTOR.value

    @property
    def is_staff(self) -> bool:
        """Admins and verified mentors can manage packages."""
        return self.is_admin or self.is_tentor

    def to_dict(self) -> dict:
        """Convert user to dictionary representation."""
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
            "role": self.role,
            "is_active": self.is_active,
            "is_admin": self.is_admin,
            "subscription_status": self.subscription_status,
            "created_at": isoformat(self.created_at),
            "last_login_at": isoformat(self.last_login_at),
        }


class TentorProfile(Base):
    """
    Mentor ("tentor") profile. Created unverified by the application form and
    verified by an admin.
    """
    __tablename__ = "tentor_profiles"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Owner
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Application data
    specialization: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    experience_years: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    education_level: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    certification: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    bio: Mapped[str] = mapped_column(Text, nullable=False)
    hourly_rate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Contact
    whatsapp: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    telegram: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    linkedin: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Status
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    user = relationship("User", back_populates="tentor_profile")

    __table_args__ = (
        CheckConstraint("experience_years >= 0", name="check_experience_positive"),
        CheckConstraint("hourly_rate >= 0", name="check_hourly_rate_positive"),
    )

    def __repr__(self) -> str:
        return f"<TentorProfile(user_id={self.user_id}, verified={self.is_verified})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.user.full_name if self.user else None,
            "email": self.user.email if self.user else None,
            "specialization": self.specialization or [],
            "experience_years": self.experience_years,
            "education_level": self.education_level,
            "certification": self.certification or [],
            "bio": self.bio,
            "hourly_rate": self.hourly_rate,
            "whatsapp": self.whatsapp,
            "telegram": self.telegram,
            "linkedin": self.linkedin,
            "is_verified": self.is_verified,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
        }
