"""
Database models for the SKD tryout backend.

This module contains all SQLAlchemy models for the application:
- User models for authentication, roles and mentor profiles
- Package models for question packages and questions
- Tryout models for sessions, answers and per-category stats
- Payment and voucher models for purchases and discounts
- Mentor models for earnings, balances and withdrawals
- Chat models for rooms, participants and messages
- Admin models for audit logs and system settings
"""

from app.core.database import Base

# Import all models to ensure they're registered with SQLAlchemy
from .user import User, UserRole, TentorProfile
from .package import QuestionPackage, Question, MainCategory
from .tryout import TryoutSession, UserAnswer, QuestionTagStats, SessionStatus
from .payment import Payment, PaymentStatus, UserPackageAccess
from .voucher import Voucher, VoucherUsage, DiscountType
from .mentor import MentorBalance, MentorEarning, MentorWithdrawal, WithdrawalStatus
from .chat import ChatRoom, ChatParticipant, ChatMessage, ChatRoomType, MessageType
from .admin import AdminLog, AdminAction, SystemSettings

# Export all models
__all__ = [
    "Base",
    "User",
    "UserRole",
    "TentorProfile",
    "QuestionPackage",
    "Question",
    "MainCategory",
    "TryoutSession",
    "UserAnswer",
    "QuestionTagStats",
    "SessionStatus",
    "Payment",
    "PaymentStatus",
    "UserPackageAccess",
    "Voucher",
    "VoucherUsage",
    "DiscountType",
    "MentorBalance",
    "MentorEarning",
    "MentorWithdrawal",
    "WithdrawalStatus",
    "ChatRoom",
    "ChatParticipant",
    "ChatMessage",
    "ChatRoomType",
    "MessageType",
    "AdminLog",
    "AdminAction",
    "SystemSettings",
]
