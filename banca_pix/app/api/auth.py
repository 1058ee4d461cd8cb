import logging

from fastapi import APIRouter, Depends, Response

from ..core.config import Settings, get_settings
from ..core.errors import InvalidInputError, UnauthorizedError
from ..core.security import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_session_token,
    new_csrf_token,
    require_session,
    verify_password,
)
from ..models import LoginRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> dict:
    if not payload.username or not payload.password:
        raise InvalidInputError("username and password are required")
    user_ok = payload.username == settings.admin_user
    pass_ok = verify_password(payload.password, settings.admin_password_hash)
    if not (user_ok and pass_ok):
        logger.warning("auth.login_failed", extra={"username": payload.username})
        raise UnauthorizedError("Invalid credentials")

    max_age = settings.session_ttl_minutes * 60
    common = {"samesite": "strict", "secure": settings.cookie_secure, "max_age": max_age, "path": "/"}
    response.set_cookie(
        SESSION_COOKIE,
        create_session_token(sub=settings.admin_user, settings=settings),
        httponly=True,
        **common,
    )
    response.set_cookie(CSRF_COOKIE, new_csrf_token(), httponly=False, **common)
    logger.info("auth.login", extra={"username": payload.username})
    return {"ok": True}

@router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)) -> dict:
    response.delete_cookie(SESSION_COOKIE, path="/", samesite="strict", secure=settings.cookie_secure, httponly=True)
    response.delete_cookie(CSRF_COOKIE, path="/", samesite="strict", secure=settings.cookie_secure)
    return {"ok": True}

@router.get("/me")
def me(claims: dict = Depends(require_session)) -> dict:
    return {"user": {"username": claims.get("sub")}}

__all__ = ["router"]
