"""Package access rules shared by the catalogue, tryout and payment flows."""

import logging
from typing import Optional, Set

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.models.package import QuestionPackage
from app.models.payment import Payment, PaymentStatus, UserPackageAccess
from app.models.user import User


logger = logging.getLogger(__name__)


def get_package_or_404(db: Session, package_id: int, user: Optional[User] = None) -> QuestionPackage:
    """
    Load a package. Inactive packages are hidden from everyone except
    admins and their creator.
    """
    package = db.query(QuestionPackage).filter(QuestionPackage.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found")
    if not package.is_active:
        is_owner = user is not None and package.creator_id == user.id
        if not (user is not None and user.is_admin) and not is_owner:
            raise NotFoundError("Package not found")
    return package


def has_paid_access(db: Session, user: User, package_id: int) -> bool:
    """True when the user holds an active grant or a completed payment."""
    grant = db.query(UserPackageAccess).filter(
        UserPackageAccess.user_id == user.id,
        UserPackageAccess.package_id == package_id,
        UserPackageAccess.is_active.is_(True)
    ).first()
    if grant:
        return True

    payment = db.query(Payment).filter(
        Payment.user_id == user.id,
        Payment.package_id == package_id,
        Payment.status == PaymentStatus.COMPLETED.value
    ).first()
    return payment is not None


def has_package_access(db: Session, user: User, package: QuestionPackage) -> bool:
    """Free packages are open to everyone; paid ones need a grant or payment."""
    if not package.requires_payment:
        return True
    if user.is_admin or package.creator_id == user.id:
        return True
    return has_paid_access(db, user, package.id)


def accessible_package_ids(db: Session, user: User) -> Set[int]:
    """Ids of paid packages unlocked for the user."""
    granted = {
        package_id for (package_id,) in db.query(UserPackageAccess.package_id).filter(
            UserPackageAccess.user_id == user.id,
            UserPackageAccess.is_active.is_(True)
        ).all()
    }
    paid = {
        package_id for (package_id,) in db.query(Payment.package_id).filter(
            Payment.user_id == user.id,
            Payment.status == PaymentStatus.COMPLETED.value
        ).all()
    }
    return granted | paid


def require_package_access(db: Session, user: User, package: QuestionPackage) -> None:
    if not has_package_access(db, user, package):
        logger.info(f"User {user.id} denied access to package {package.id}")
        raise PermissionDeniedError("You need to purchase this package first")


def grant_access(
    db: Session, user_id: int, package_id: int, payment_id: Optional[int] = None
) -> UserPackageAccess:
    """Create or re-activate the access grant; never duplicates it."""
    grant = db.query(UserPackageAccess).filter(
        UserPackageAccess.user_id == user_id,
        UserPackageAccess.package_id == package_id
    ).first()
    if grant:
        grant.is_active = True
        if payment_id and not grant.payment_id:
            grant.payment_id = payment_id
        return grant

    grant = UserPackageAccess(
        user_id=user_id,
        package_id=package_id,
        payment_id=payment_id,
        is_active=True
    )
    db.add(grant)
    logger.info(f"Access to package {package_id} granted to user {user_id}")
    return grant
