from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional

from app.config import AppConfig
from app.core.logger import get_logger
from app.core.security import SESSION_COOKIE, SessionSigner
from app.core.session import Session
from app.routers.limits import auth_limit, limiter

logger = get_logger("auth")

router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    email: Optional[str] = ""


# ==================== Dependencies ====================

def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_signer(request: Request) -> SessionSigner:
    return request.app.state.signer


def get_current_user(request: Request) -> Optional[dict]:
    """Decode the signed session cookie. None when missing, expired or tampered."""
    return get_signer(request).read(request.cookies.get(SESSION_COOKIE))


def get_session(request: Request) -> Session:
    """Session bound to the account named in the cookie, if it still exists."""
    user = get_current_user(request)
    return Session(
        request.app.state.db,
        request.app.state.config,
        account_id=user["account_id"] if user else None,
    )


# ==================== Endpoints ====================

@router.post("/auth/login")
@limiter.limit(auth_limit)
async def login(
    request: Request,
    data: LoginRequest,
    session: Session = Depends(get_session),
    config: AppConfig = Depends(get_config),
):
    """Log in by username. First login creates the account with the starting bonus."""
    account = session.login(data.username, data.email)
    logger.info(f"User logged in: {account.username}")

    response = JSONResponse({"account": account.model_dump(mode="json")})
    response.set_cookie(
        SESSION_COOKIE,
        get_signer(request).sign(account.id, account.username),
        max_age=config.security.session_max_age_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=not config.server.debug,  # Use Secure cookies in production
    )
    return response


@router.post("/auth/logout")
async def logout(session: Session = Depends(get_session)):
    session.logout()
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/auth/me")
async def me(session: Session = Depends(get_session)):
    account = session.current_account()
    return {"account": account.model_dump(mode="json")}
