"""
Credential hashing, session tokens and the FastAPI auth dependencies.

Tokens are HS256 JWTs carrying the account id (``sub``), email, role and
admin flag. Protected routes depend on ``get_current_account``; admin routes
on ``require_admin``.

    @router.get("/me")
    async def me(account: Account = Depends(get_current_account)):
        ...
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.hash import pbkdf2_sha256
from sqlalchemy.orm import Session

from lucky_triple.core.config import settings
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import AuthenticationRequired, PermissionDenied
from lucky_triple.core.logging import bind_account_id, get_logger
from lucky_triple.models import Account

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(password, password_hash)
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored credential hash could not be parsed")
        return False


def create_access_token(account: Account, expires_in: Optional[timedelta] = None) -> str:
    """Issue a signed, time-boxed session token for the account."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_in or timedelta(days=settings.JWT_EXPIRE_DAYS))
    claims = {
        "sub": account.id,
        "email": account.email,
        "role": account.role,
        "is_admin": account.is_admin,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry.

    Raises:
        PermissionDenied: token is expired, tampered with or malformed
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise PermissionDenied("Invalid or expired token")
    except jwt.InvalidTokenError:
        raise PermissionDenied("Invalid or expired token")

    if not payload.get("sub"):
        raise PermissionDenied("Invalid or expired token")
    return payload


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> Account:
    """Resolve the bearer token to a live account before any handler logic runs."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired("Access token required")

    payload = decode_access_token(credentials.credentials)
    account = db.query(Account).filter(Account.id == payload["sub"]).first()
    if account is None:
        raise AuthenticationRequired("Account no longer exists")

    bind_account_id(account.id)
    return account


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    """Role is read from the database row, not trusted from the token claims."""
    if not account.is_admin:
        raise PermissionDenied("Admin access required")
    return account
