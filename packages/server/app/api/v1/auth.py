"""
Authentication endpoints.

- Email/Password registration & login
- The caller's own profile
- JWT session logout (Redis revocation)
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_current_user,
    hash_password,
    revoke_jwt,
    token_from_request,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError, BadRequestError, ConflictError
from app.models.user import User
from modstore_shared.schemas.common import UserRole
from modstore_shared.schemas.users import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session."""
    result = await session.execute(select(User).where(User.email == body.email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already registered", code="EMAIL_TAKEN")

    if len(body.password) < 8:
        raise BadRequestError("Password must be at least 8 characters", code="WEAK_PASSWORD")

    user = User(
        username=body.username,
        email=body.email,
        role=UserRole.USER.value,
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    token, _jti = create_jwt(user_id=user.id, role=user.role)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("user.registered", user_id=str(user.id))
    return AuthResponse(user_id=str(user.id), email=body.email, message="Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    result = await session.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash or not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email)
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

    token, _jti = create_jwt(user_id=user.id, role=user.role)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(user_id=str(user.id), email=body.email, message="Login successful")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        twitch_linked=user.twitch_linked,
        created_at=user.created_at,
    )


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = token_from_request(request)
    if token:
        try:
            await revoke_jwt(decode_jwt(token))
        except jwt.PyJWTError:
            log.info("auth.logout_invalid_token")

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}
