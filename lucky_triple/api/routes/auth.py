"""
Account API routes: signup, login and the current profile.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from lucky_triple.core.auth import get_current_account
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import LuckyTripleError, ServiceFailure
from lucky_triple.core.logging import get_logger
from lucky_triple.core.rate_limit import AUTH_LIMIT, limiter
from lucky_triple.models import Account
from lucky_triple.services.auth_service import AuthService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# Presence is checked by the service so the error text stays uniform
class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("/signup")
@limiter.limit(AUTH_LIMIT)
async def signup(request: Request, payload: SignupRequest, db: Session = Depends(get_db)):
    """Create a player account and return a session token."""
    try:
        result = AuthService(db).register(payload.email, payload.password, payload.phone)
        return {
            "success": True,
            "token": result["token"],
            "user": result["account"].to_public_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Signup error: {e}", exc_info=True)
        raise ServiceFailure("Server error during signup")


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).login(payload.email, payload.password)
        return {
            "success": True,
            "token": result["token"],
            "user": result["account"].to_public_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        raise ServiceFailure("Server error during login")


@router.get("/me")
async def me(account: Account = Depends(get_current_account)):
    return {"success": True, "user": account.to_public_dict()}
