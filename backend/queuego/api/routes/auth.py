"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from queuego.core.auth import CurrentUser
from queuego.core.rate_limit import limiter
from queuego.core.security import (
    ACCESS_TOKEN_MAX_AGE,
    COOKIE_ACCESS_NAME,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    create_user_token,
    get_password_hash,
    verify_password,
)
from queuego.db.session import DbSession
from queuego.models.user import User
from queuego.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, Token
from queuego.schemas.user import UserResponse

logger = logging.getLogger("auth")

router = APIRouter()


def _issue_token(response: Response, user: User) -> str:
    """Create a JWT for the user and set it as the HttpOnly session cookie."""
    token = create_user_token(user.id, user.email)
    response.set_cookie(
        key=COOKIE_ACCESS_NAME,
        value=token,
        max_age=ACCESS_TOKEN_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
    )
    return token


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, response: Response, data: RegisterRequest, db: DbSession):
    """Create an account and log it in."""
    client_ip = request.client.host if request.client else "unknown"

    if db.query(User).filter(User.email == data.email).first():
        logger.warning(f"Registration attempt with existing email: {data.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=data.email,
        password_hash=get_password_hash(data.password),
        name=data.name,
        phone=data.phone,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"New user registered: {user.email} (ID: {user.id}) from IP: {client_ip}")

    token = _issue_token(response, user)
    return AuthResponse(
        access_token=token,
        user=UserResponse.model_validate(user),
        message="Registration successful",
    )


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, response: Response, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == login_request.email).first()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {login_request.email} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.email} (ID: {user.id}) from IP: {client_ip}")
    return Token(access_token=_issue_token(response, user))


@router.post("/logout")
@limiter.limit("30/minute")
def logout(request: Request, response: Response, current_user: CurrentUser):
    """Clear the session cookie. Bearer tokens simply expire."""
    response.delete_cookie(
        key=COOKIE_ACCESS_NAME,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
    )
    logger.info(f"User logged out: {current_user.email} (ID: {current_user.user_id})")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
def get_current_user_info(request: Request, current_user: CurrentUser, db: DbSession):
    """Get current authenticated user info."""
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
