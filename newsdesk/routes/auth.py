"""
Authentication routes for login, register, and token management.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..database import get_db
from ..limiter import limiter
from ..models.user import User, Role
from ..models.subscription import NotificationSubscription, SubscriptionType
from ..schemas.auth import UserCreate, UserLogin, TokenResponse, RefreshRequest
from ..auth import (
    verify_password,
    get_password_hash,
    create_tokens,
    get_required_user,
    refresh_access_token,
)
from ..config import get_settings
from ..logging_config import api_logger
from ..responses import success, bad_request, unauthorized
from ..timeutils import utcnow

settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not verify_password(password, user.hashed_password):
        unauthorized("Invalid email or password")
    if not user.is_active:
        unauthorized("Account is deactivated")
    user.last_login = utcnow()
    db.commit()
    return user


def _token_response(user: User) -> TokenResponse:
    access_token, refresh_token = create_tokens(user)
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/register")
@limiter.limit(settings.register_rate_limit)
def register(request: Request, user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a reader account, subscribed to all new posts in-app."""
    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        bad_request("Email already registered")

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        name=user_data.name or email.split("@")[0],
        role=Role.USER,
    )
    db.add(user)
    db.flush()
    db.add(NotificationSubscription(
        user_id=user.id,
        subscription_type=SubscriptionType.ALL,
        in_app=True,
        web_push=False,
        email=False,
    ))
    db.commit()
    db.refresh(user)
    api_logger.info("User registered", user_id=user.id)
    return success(user.to_dict(), "Registration successful")


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Login with OAuth2 form (username/password)."""
    return _token_response(_authenticate(db, form_data.username, form_data.password))


@router.post("/login/json", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
def login_json(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    """Login with JSON body (email/password)."""
    return _token_response(_authenticate(db, credentials.email, credentials.password))


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit(settings.refresh_rate_limit)
def refresh_tokens(request: Request, refresh_request: RefreshRequest, db: Session = Depends(get_db)):
    """Get new access and refresh tokens using a valid refresh token."""
    tokens = refresh_access_token(refresh_request.refresh_token, db)
    if not tokens:
        unauthorized("Invalid or expired refresh token")

    access_token, refresh_token = tokens
    return TokenResponse(access_token=access_token, refresh_token=refresh_token)


@router.get("/me")
def get_me(current_user: User = Depends(get_required_user)):
    """Get current authenticated user."""
    return success(current_user.to_dict())


@router.post("/logout")
def logout(current_user: User = Depends(get_required_user)):
    """
    Logout the current user.

    JWTs are stateless, so the client is expected to discard its tokens.
    """
    return success(message="Successfully logged out")
