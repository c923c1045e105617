from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime, timedelta

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.core.rate_limiter import endpoint_limit
from storefront.core.security import (
    create_user_token,
    generate_reset_token,
    get_password_hash,
    verify_password,
)
from storefront.models.user import PasswordResetToken, User, UserRole
from storefront.modules.auth.dependencies import get_current_user
from storefront.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ProfileUpdate,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
    UserResponse,
)
from storefront.schemas.common import MessageResponse
from storefront.services.notification_service import notification_service

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@endpoint_limit("register")
async def register(
    request: Request,
    user_data: UserRegister,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """Create a customer account and sign it in"""
    existing = await db.scalar(select(User).where(User.email == user_data.email))
    if existing:
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=user_data.email,
            reason="Email already registered",
            client_ip=_client_ip(request)
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email"
        )

    user = User(
        name=user_data.name,
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        phone=user_data.phone,
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.log_auth_event(event="register", success=True, user_email=user.email, client_ip=_client_ip(request))
    notification_service.welcome(background_tasks, user)

    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
        access_token=create_user_token(user),
    )


@router.post("/login", response_model=AuthResponse)
@endpoint_limit("login")
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    user = await db.scalar(select(User).where(User.email == credentials.email))

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=_client_ip(request)
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    logger.log_auth_event(event="login", success=True, user_email=user.email, client_ip=_client_ip(request))
    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        access_token=create_user_token(user),
    )


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update name and/or phone"""
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not verify_password(data.current_password, current_user.password_hash):
        logger.log_auth_event(event="change_password", success=False, user_email=current_user.email,
                              reason="Wrong current password")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    current_user.password_hash = get_password_hash(data.new_password)
    await db.commit()
    logger.log_auth_event(event="change_password", success=True, user_email=current_user.email)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
@endpoint_limit("forgot_password")
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """Always answers the same way so account existence is not revealed"""
    user = await db.scalar(select(User).where(User.email == data.email.lower()))

    if user:
        # Only the newest link stays usable
        await db.execute(
            update(PasswordResetToken)
            .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used == False)
            .values(used=True)
        )
        token = generate_reset_token()
        db.add(PasswordResetToken(
            user_id=user.id,
            token=token,
            expires_at=datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        ))
        await db.commit()

        notification_service.password_reset(background_tasks, user, token)
        logger.log_auth_event(event="forgot_password", success=True, user_email=user.email,
                              client_ip=_client_ip(request))
    else:
        logger.log_auth_event(event="forgot_password", success=False, user_email=data.email,
                              reason="Unknown email", client_ip=_client_ip(request))

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
@endpoint_limit("reset_password")
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    reset_token = await db.scalar(
        select(PasswordResetToken).where(PasswordResetToken.token == data.token)
    )
    if not reset_token or not reset_token.is_valid():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user = await db.scalar(select(User).where(User.id == reset_token.user_id))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user.password_hash = get_password_hash(data.new_password)
    reset_token.used = True
    await db.commit()

    notification_service.password_reset_done(background_tasks, user)
    logger.log_auth_event(event="reset_password", success=True, user_email=user.email,
                          client_ip=_client_ip(request))
    return MessageResponse(message="Password has been reset successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy"""
    logger.log_auth_event(event="logout", success=True, user_email=current_user.email)
    return MessageResponse(message="Logged out successfully")
