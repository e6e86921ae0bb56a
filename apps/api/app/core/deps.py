"""FastAPI dependencies: database session, cookie auth, CSRF."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.db.models import User
from app.db.session import SessionLocal

COOKIE_NAME = "onboarding_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """Request-scoped database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the caller from the session cookie.

    The token must verify against a current or previous secret, name an
    active user, and carry that user's current token_version (bumped on
    revocation).
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise _unauthorized("Not authenticated")

    try:
        claims = decode_session_token(token)
        user_id = UUID(claims["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise _unauthorized("Invalid session")

    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account disabled")
    if claims.get("token_version") != user.token_version:
        raise _unauthorized("Session revoked")
    return user


def require_csrf_header(request: Request) -> None:
    """Reject state-changing requests without the XMLHttpRequest marker header."""
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
