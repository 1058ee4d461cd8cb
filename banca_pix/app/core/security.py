from __future__ import annotations

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt  # PyJWT
from fastapi import Cookie, Depends, Header, Request
from passlib.context import CryptContext

from .config import Settings, get_settings
from .errors import InvalidCsrfError, UnauthorizedError

ALGORITHM = "HS256"
SESSION_COOKIE = "session"
CSRF_COOKIE = "csrf"
CSRF_HEADER = "X-CSRF-Token"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# -------------------- Password hashing --------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


# -------------------- Session tokens --------------------
def create_session_token(*, sub: str, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": "admin",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.session_ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.session_secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError("Session expired or invalid") from exc


def new_csrf_token() -> str:
    return secrets.token_hex(16)


# -------------------- FastAPI dependencies --------------------
def require_session(
    session: Optional[str] = Cookie(default=None),
    settings: Settings = Depends(get_settings),
) -> dict:
    if not session:
        raise UnauthorizedError("Login required")
    return decode_session_token(session, settings)


def require_operator(
    request: Request,
    claims: dict = Depends(require_session),
    csrf: Optional[str] = Cookie(default=None),
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER),
) -> dict:
    """Authenticated operator; mutating calls must echo the csrf cookie in a header."""
    if request.method in MUTATING_METHODS:
        if not csrf or not x_csrf_token or not hmac.compare_digest(
            csrf.encode("utf-8"), x_csrf_token.encode("utf-8")
        ):
            raise InvalidCsrfError("Missing or mismatched CSRF token")
    return claims
