"""
Mentor ("tentor") workflows.

- applications: submit, approve, reject
- earnings: commission credited when a mentor's package is paid for
- withdrawals: request with balance reservation, admin transitions
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    BusinessRuleError,
    InvalidStateError,
    NotFoundError,
)
from app.models.admin import get_setting_value
from app.models.mentor import (
    MentorBalance,
    MentorEarning,
    MentorWithdrawal,
    WithdrawalStatus,
)
from app.models.package import QuestionPackage
from app.models.payment import Payment, UserPackageAccess
from app.models.user import TentorProfile, User, UserRole
from app.utils.dates import isoformat, utcnow
from app.utils.pagination import paginate


logger = logging.getLogger(__name__)

MENTOR_PAGE_SIZE = 5


# Applications

def apply_for_mentor(db: Session, user: User, data: Dict[str, Any]) -> TentorProfile:
    """Create an unverified mentor profile for ``user``."""
    if not get_setting_value(db, "enable_mentor_registration", True):
        raise BusinessRuleError("Mentor registration is currently closed")
    if user.is_tentor or user.is_admin:
        raise BusinessRuleError("You already have back-office access")
    if db.query(TentorProfile).filter(TentorProfile.user_id == user.id).first():
        raise BusinessRuleError("You have already applied as a mentor")

    specialization = [s.strip() for s in data.get("specialization") or [] if s and s.strip()]
    if not specialization:
        raise BusinessRuleError("Choose at least one specialization")
    bio = (data.get("bio") or "").strip()
    if not bio:
        raise BusinessRuleError("Bio is required")

    profile = TentorProfile(
        user_id=user.id,
        specialization=specialization,
        experience_years=data.get("experience_years") or 0,
        education_level=data.get("education_level"),
        certification=[c.strip() for c in data.get("certification") or [] if c and c.strip()],
        bio=bio,
        hourly_rate=data.get("hourly_rate") or 0,
        whatsapp=data.get("whatsapp"),
        telegram=data.get("telegram"),
        linkedin=data.get("linkedin"),
        is_verified=False,
        is_active=True,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"Mentor application submitted by user {user.id}")
    return profile


def get_profile_or_404(db: Session, profile_id: int) -> TentorProfile:
    profile = db.query(TentorProfile).filter(TentorProfile.id == profile_id).first()
    if not profile:
        raise NotFoundError("Mentor application not found")
    return profile


def list_applications(db: Session, pending_only: bool = True) -> List[TentorProfile]:
    query = db.query(TentorProfile)
    if pending_only:
        query = query.filter(TentorProfile.is_verified.is_(False))
    return query.order_by(TentorProfile.created_at.desc(), TentorProfile.id.desc()).all()


def approve_mentor(db: Session, profile: TentorProfile) -> TentorProfile:
    if profile.is_verified:
        raise InvalidStateError("Mentor is already verified")
    profile.is_verified = True
    profile.is_active = True
    profile.user.role = UserRole.TENTOR.value
    get_or_create_balance(db, profile.user_id)
    logger.info(f"Mentor application {profile.id} approved (user {profile.user_id})")
    return profile


def reject_mentor(db: Session, profile: TentorProfile) -> None:
    """Remove the application and make sure the user is a student again."""
    user = profile.user
    if user and user.role == UserRole.TENTOR.value:
        user.role = UserRole.STUDENT.value
    db.delete(profile)
    logger.info(f"Mentor application {profile.id} rejected (user {profile.user_id})")


# Balance and earnings

def get_or_create_balance(db: Session, mentor_id: int) -> MentorBalance:
    balance = db.query(MentorBalance).filter(MentorBalance.mentor_id == mentor_id).first()
    if balance is None:
        balance = MentorBalance(
            mentor_id=mentor_id,
            total_earnings=0,
            available_balance=0,
            total_withdrawn=0,
        )
        db.add(balance)
        db.flush()
    return balance


def commission_rate(db: Session) -> int:
    return int(get_setting_value(db, "mentor_commission_rate", settings.MENTOR_COMMISSION_RATE))


def credit_earning(db: Session, payment: Payment) -> Optional[MentorEarning]:
    """
    Credit the package creator for a completed payment.

    Only packages created by a mentor earn commission; each payment is
    credited at most once. The caller commits.
    """
    package = payment.package
    if package is None or package.creator_id is None:
        return None
    creator = package.creator
    if creator is None or creator.role != UserRole.TENTOR.value:
        return None
    if payment.amount <= 0:
        return None

    existing = db.query(MentorEarning).filter(MentorEarning.payment_id == payment.id).first()
    if existing:
        return existing

    rate = commission_rate(db)
    amount = (payment.amount * rate + 50) // 100
    earning = MentorEarning(
        mentor_id=creator.id,
        payment_id=payment.id,
        package_id=package.id,
        student_id=payment.user_id,
        payment_amount=payment.amount,
        commission_rate=rate,
        commission_amount=amount,
    )
    db.add(earning)

    balance = get_or_create_balance(db, creator.id)
    balance.total_earnings += amount
    balance.available_balance += amount
    logger.info(f"Mentor {creator.id} credited {amount} for payment {payment.id}")
    return earning


# Withdrawals

def request_withdrawal(
    db: Session,
    mentor: User,
    amount: int,
    bank_name: str,
    account_number: str,
    account_holder: str,
) -> MentorWithdrawal:
    """Create a pending withdrawal and reserve its amount."""
    bank_name = (bank_name or "").strip()
    account_number = (account_number or "").strip()
    account_holder = (account_holder or "").strip()
    if not (bank_name and account_number and account_holder):
        raise BusinessRuleError("Bank name, account number and account holder are required")
    if amount is None or amount <= 0:
        raise BusinessRuleError("Withdrawal amount must be greater than 0")

    balance = get_or_create_balance(db, mentor.id)
    if amount > balance.available_balance:
        raise BusinessRuleError("Withdrawal amount exceeds available balance")

    balance.available_balance -= amount
    withdrawal = MentorWithdrawal(
        mentor_id=mentor.id,
        amount=amount,
        bank_name=bank_name,
        account_number=account_number,
        account_holder=account_holder,
        status=WithdrawalStatus.PENDING.value,
        created_at=utcnow(),
    )
    db.add(withdrawal)
    db.commit()
    db.refresh(withdrawal)
    logger.info(f"Withdrawal {withdrawal.id} of {amount} requested by mentor {mentor.id}")
    return withdrawal


def get_withdrawal_or_404(db: Session, withdrawal_id: int) -> MentorWithdrawal:
    withdrawal = db.query(MentorWithdrawal).filter(MentorWithdrawal.id == withdrawal_id).first()
    if not withdrawal:
        raise NotFoundError("Withdrawal not found")
    return withdrawal


def process_withdrawal(
    db: Session,
    withdrawal: MentorWithdrawal,
    new_status: str,
    admin: User,
    notes: Optional[str] = None,
) -> MentorWithdrawal:
    """
    Move a withdrawal along ``pending -> approved -> completed`` or
    ``pending -> rejected``. Rejection releases the reserved amount and
    completion counts it as withdrawn. The caller commits.
    """
    if not withdrawal.can_transition_to(new_status):
        raise InvalidStateError(
            f"Cannot change withdrawal from '{withdrawal.status}' to '{new_status}'"
        )

    balance = get_or_create_balance(db, withdrawal.mentor_id)
    if new_status == WithdrawalStatus.REJECTED.value:
        balance.available_balance += withdrawal.amount
    elif new_status == WithdrawalStatus.COMPLETED.value:
        balance.total_withdrawn += withdrawal.amount

    old_status = withdrawal.status
    withdrawal.status = new_status
    withdrawal.admin_notes = notes
    withdrawal.processed_at = utcnow()
    withdrawal.processed_by = admin.id
    logger.info(
        f"Withdrawal {withdrawal.id} moved {old_status} -> {new_status} by admin {admin.id}"
    )
    return withdrawal


def mentor_overview(
    db: Session,
    mentor: User,
    withdrawals_page: int = 1,
    earnings_page: int = 1,
) -> Dict[str, Any]:
    """Balance plus paginated withdrawals and earnings of a mentor."""
    balance = get_or_create_balance(db, mentor.id)
    db.commit()

    withdrawals = db.query(MentorWithdrawal).filter(
        MentorWithdrawal.mentor_id == mentor.id
    ).order_by(MentorWithdrawal.created_at.desc(), MentorWithdrawal.id.desc()).all()
    earnings = db.query(MentorEarning).filter(
        MentorEarning.mentor_id == mentor.id
    ).order_by(MentorEarning.created_at.desc(), MentorEarning.id.desc()).all()

    withdrawal_page = paginate(withdrawals, withdrawals_page, MENTOR_PAGE_SIZE)
    earning_page = paginate(earnings, earnings_page, MENTOR_PAGE_SIZE)
    withdrawal_page["items"] = [w.to_dict() for w in withdrawal_page["items"]]
    earning_page["items"] = [e.to_dict() for e in earning_page["items"]]

    return {
        "balance": balance.to_dict(),
        "withdrawals": withdrawal_page,
        "earnings": earning_page,
    }


def list_withdrawals(
    db: Session,
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[MentorWithdrawal]:
    query = db.query(MentorWithdrawal).join(User, MentorWithdrawal.mentor_id == User.id)
    if status_filter:
        query = query.filter(MentorWithdrawal.status == status_filter)
    if search:
        term = f"%{search}%"
        query = query.filter(
            or_(
                User.full_name.ilike(term),
                User.email.ilike(term),
                MentorWithdrawal.bank_name.ilike(term),
                MentorWithdrawal.account_holder.ilike(term),
            )
        )
    return query.order_by(MentorWithdrawal.created_at.desc(), MentorWithdrawal.id.desc()).all()


def withdrawal_counts(db: Session) -> Dict[str, int]:
    rows = db.query(MentorWithdrawal.status, func.count(MentorWithdrawal.id)).group_by(
        MentorWithdrawal.status
    ).all()
    counts = {s.value: 0 for s in WithdrawalStatus}
    counts.update({status_value: count for status_value, count in rows})
    counts["total"] = sum(counts[s.value] for s in WithdrawalStatus)
    return counts


def list_balances(db: Session) -> List[MentorBalance]:
    return db.query(MentorBalance).order_by(MentorBalance.available_balance.desc()).all()


# Packages owned by a mentor

def get_owned_package(db: Session, mentor: User, package_id: int) -> QuestionPackage:
    """Package created by ``mentor``; admins may access any package."""
    package = db.query(QuestionPackage).filter(QuestionPackage.id == package_id).first()
    if not package or (package.creator_id != mentor.id and not mentor.is_admin):
        raise NotFoundError("Package not found")
    return package


def list_buyers(db: Session, mentor: User) -> List[dict]:
    """Students holding access to the mentor's packages, newest first."""
    rows = db.query(UserPackageAccess).join(
        QuestionPackage, UserPackageAccess.package_id == QuestionPackage.id
    ).filter(
        QuestionPackage.creator_id == mentor.id
    ).order_by(UserPackageAccess.granted_at.desc(), UserPackageAccess.id.desc()).all()

    return [
        {
            "user_id": row.user_id,
            "full_name": row.user.full_name if row.user else None,
            "email": row.user.email if row.user else None,
            "package_id": row.package_id,
            "package_title": row.package.title if row.package else None,
            "payment_id": row.payment_id,
            "amount": row.payment.amount if row.payment else 0,
            "is_active": row.is_active,
            "granted_at": isoformat(row.granted_at),
        }
        for row in rows
    ]
