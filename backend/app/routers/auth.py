"""
Authentication router for the SKD tryout backend.

Handles user registration, login, logout, profile and password changes.
"""

import logging
from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.security import (
    check_password_length,
    create_access_token,
    get_password_hash,
    verify_password,
)
from app.models.admin import AdminAction, get_setting_value
from app.models.user import User, UserRole
from app.routers.deps import get_current_active_user, get_current_user, record_action
from app.schemas.auth import (
    PasswordChange,
    ProfileUpdate,
    Token,
    UserRegister,
    UserResponse,
)
from app.utils.dates import utcnow


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Register a new student account.
    """
    if not get_setting_value(db, "enable_registration", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User registration is currently disabled"
        )

    password_error = check_password_length(user_data.password)
    if password_error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=password_error
        )

    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=email,
        full_name=user_data.full_name.strip(),
        phone=user_data.phone,
        hashed_password=get_password_hash(user_data.password),
        role=UserRole.STUDENT.value,
        is_active=True,
        is_admin=False,
        subscription_status="inactive",
    )
    db.add(new_user)
    db.flush()

    record_action(
        db, request, new_user,
        action=AdminAction.CREATE,
        entity_type="user",
        entity_id=new_user.id,
        details={"action": "user_registration"},
    )
    db.commit()
    db.refresh(new_user)

    logger.info(f"User registered: {new_user.email}")
    return new_user


@router.post("/login", response_model=Token)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    OAuth2 compatible login endpoint; the username field carries the e-mail.
    """
    user = db.query(User).filter(User.email == form_data.username.lower()).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not verify_password(form_data.password, user.hashed_password):
        record_action(
            db, request, user,
            action=AdminAction.LOGIN,
            entity_type="user",
            entity_id=user.id,
            details={"action": "failed_login_attempt"},
            success=False,
            error_message="Invalid password",
        )
        db.commit()
        logger.warning(f"Failed login for {user.email}")

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    access_token = create_access_token(
        subject=user.email,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        additional_claims={
            "user_id": user.id,
            "role": user.role,
            "is_admin": user.is_admin,
        }
    )

    user.last_login_at = utcnow()
    record_action(
        db, request, user,
        action=AdminAction.LOGIN,
        entity_type="user",
        entity_id=user.id,
        details={"action": "successful_login"},
    )
    db.commit()
    db.refresh(user)

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user
    }


@router.post("/logout")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Logout endpoint (mainly for logging purposes).
    """
    record_action(
        db, request, current_user,
        action=AdminAction.LOGOUT,
        entity_type="user",
        entity_id=current_user.id,
        details={"action": "user_logout"},
    )
    db.commit()

    return {"message": "Successfully logged out"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Get current user information.
    """
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> User:
    """
    Update name, phone or avatar of the current user.
    """
    for field, value in profile.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/change-password")
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Change password for authenticated user.
    """
    if not verify_password(password_data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    password_error = check_password_length(password_data.new_password)
    if password_error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=password_error
        )

    current_user.hashed_password = get_password_hash(password_data.new_password)
    db.commit()

    return {"message": "Password changed successfully"}
