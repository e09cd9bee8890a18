"""
Admin-specific models for the SKD tryout backend.

Defines AdminLog (audit trail) and SystemSettings (typed key/value
configuration editable at runtime).
"""

import json
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, Index, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base
from app.core.config import settings as app_settings
from app.utils.dates import isoformat


class AdminAction(str, Enum):
    """Types of actions to log."""
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    SETTINGS_CHANGE = "settings_change"


class AdminLog(Base):
    """
    Audit log for logins and back-office actions.
    """
    __tablename__ = "admin_logs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # User who performed the action
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)  # package, question, voucher, withdrawal, ...
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Action metadata
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # Supports IPv6
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Results
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="admin_logs")

    # Table constraints
    __table_args__ = (
        Index("idx_admin_log_user_action", "user_id", "action"),
        Index("idx_admin_log_entity", "entity_type", "entity_id"),
        Index("idx_admin_log_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog(id={self.id}, user_id={self.user_id}, action='{self.action}', entity='{self.entity_type}')>"

    @classmethod
    def log_action(
        cls,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None
    ) -> "AdminLog":
        """Factory method to create admin log entries."""
        return cls(
            user_id=user_id,
            action=action.value if isinstance(action, Enum) else action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_message=error_message
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
            "success": self.success,
            "error_message": self.error_message,
            "ip_address": self.ip_address,
            "created_at": isoformat(self.created_at),
        }


class SystemSettings(Base):
    """
    System-wide settings and configuration.
    """
    __tablename__ = "system_settings"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Setting identification
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)  # string, integer, boolean, json

    # Setting metadata
    category: Mapped[str] = mapped_column(String(50), nullable=False)  # general, features, chat, payments
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)  # Can non-admins see this?
    is_editable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)  # Can admins edit this?

    # Validation
    validation_rules: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    default_value: Mapped[str] = mapped_column(Text, nullable=False)

    # Audit
    last_modified_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
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

    # Table constraints
    __table_args__ = (
        Index("idx_system_settings_category", "category"),
        Index("idx_system_settings_public", "is_public"),
    )

    def __repr__(self) -> str:
        return f"<SystemSettings(key='{self.key}', category='{self.category}')>"

    def get_typed_value(self) -> Any:
        """Get the value converted to its proper type."""
        if self.value_type == "integer":
            return int(self.value)
        elif self.value_type == "boolean":
            return self.value.lower() in ("true", "1", "yes", "on")
        elif self.value_type == "json":
            return json.loads(self.value)
        return self.value

    def set_typed_value(self, value: Any) -> None:
        """Set the value with proper type conversion."""
        if self.value_type == "json":
            self.value = json.dumps(value)
        elif self.value_type == "boolean":
            self.value = "true" if value in (True, "true", "1", 1, "yes", "on") else "false"
        else:
            self.value = str(value)

    def validate_value(self, value: Any) -> Optional[str]:
        """Return an error message when ``value`` breaks the validation rules."""
        if self.value_type == "integer":
            try:
                number = int(value)
            except (TypeError, ValueError):
                return f"Setting '{self.key}' must be an integer"
            rules = self.validation_rules or {}
            if "min" in rules and number < rules["min"]:
                return f"Setting '{self.key}' must be at least {rules['min']}"
            if "max" in rules and number > rules["max"]:
                return f"Setting '{self.key}' must be at most {rules['max']}"
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "value": self.get_typed_value(),
            "value_type": self.value_type,
            "category": self.category,
            "description": self.description,
            "is_public": self.is_public,
            "is_editable": self.is_editable,
            "validation_rules": self.validation_rules,
            "updated_at": isoformat(self.updated_at),
        }

    @classmethod
    def get_default_settings(cls) -> List[Dict[str, Any]]:
        """Get default system settings."""
        chat_minutes = str(app_settings.CHAT_DEFAULT_DURATION_MINUTES)
        return [
            # General settings
            {
                "key": "site_name",
                "value": app_settings.PROJECT_NAME,
                "value_type": "string",
                "category": "general",
                "description": "The name of the tryout platform",
                "is_public": True,
                "is_editable": True,
                "default_value": app_settings.PROJECT_NAME
            },

            # Feature flags
            {
                "key": "enable_registration",
                "value": "true",
                "value_type": "boolean",
                "category": "features",
                "description": "Allow new user registrations",
                "is_public": True,
                "is_editable": True,
                "default_value": "true"
            },
            {
                "key": "enable_mentor_registration",
                "value": "true",
                "value_type": "boolean",
                "category": "features",
                "description": "Accept new mentor applications",
                "is_public": True,
                "is_editable": True,
                "default_value": "true"
            },

            # Chat settings
            {
                "key": "chat_duration_minutes",
                "value": chat_minutes,
                "value_type": "integer",
                "category": "chat",
                "description": "How many minutes back chat messages are shown",
                "is_public": True,
                "is_editable": True,
                "default_value": chat_minutes,
                "validation_rules": {"min": 1, "max": 10080}
            },

            # Payment settings
            {
                "key": "mentor_commission_rate",
                "value": str(app_settings.MENTOR_COMMISSION_RATE),
                "value_type": "integer",
                "category": "payments",
                "description": "Percentage of a package payment credited to its mentor",
                "is_public": False,
                "is_editable": True,
                "default_value": str(app_settings.MENTOR_COMMISSION_RATE),
                "validation_rules": {"min": 0, "max": 100}
            },
        ]


def get_setting_value(db, key: str, default: Any = None) -> Any:
    """Typed value of a system setting, or ``default`` when it is missing."""
    setting = db.query(SystemSettings).filter(SystemSettings.key == key).first()
    if setting is None:
        return default
    return setting.get_typed_value()
