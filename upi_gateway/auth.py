# upi_gateway/auth.py
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import structlog
from fastapi import Depends, Header
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import get_db
from .errors import Forbidden, Unauthenticated
from .models import AdminUser, ROLES

logger = structlog.get_logger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Env config
# ─────────────────────────────────────────────────────────────────────────────

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
# default 24h (in minutes)
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", "1440"))


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Password hashing
# ─────────────────────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Return True iff 'plain' matches the bcrypt 'hashed' value."""
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # malformed hash in storage: fail closed
        return False


# ─────────────────────────────────────────────────────────────────────────────
# JWT helpers
# ─────────────────────────────────────────────────────────────────────────────

def create_token(principal: AdminUser) -> str:
    """Create a signed JWT carrying the principal's username and role."""
    iat = _now_utc()
    exp = iat + timedelta(minutes=JWT_EXPIRE_MIN)
    payload = {
        "sub": principal.username,
        "role": principal.role,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as e:
        raise Unauthenticated(f"Invalid or expired token: {e}")
    if not claims.get("sub") or claims.get("role") not in ROLES:
        raise Unauthenticated("Invalid token claims")
    return claims


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("No token provided")
    # Handle case-insensitively and allow extra spaces
    parts = authorization.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthenticated("Malformed Authorization header")
    return parts[1]


# ─────────────────────────────────────────────────────────────────────────────
# Auth dependencies
# ─────────────────────────────────────────────────────────────────────────────

def require_admin(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> AdminUser:
    """
    Resolve the acting principal from 'Authorization: Bearer <jwt>'.
    The principal is reloaded on every call so deactivation takes effect
    immediately. Raises Unauthenticated (401) on any failure.
    """
    claims = decode_token(_bearer_token(authorization))
    principal = db.execute(
        select(AdminUser).where(AdminUser.username == claims["sub"], AdminUser.active.is_(True))
    ).scalar_one_or_none()
    if principal is None:
        raise Unauthenticated("Invalid token")
    return principal


def require_super_admin(principal: AdminUser = Depends(require_admin)) -> AdminUser:
    """Authenticated AND super_admin; otherwise Forbidden (403)."""
    if not principal.is_super_admin:
        logger.warning("forbidden_role", username=principal.username, role=principal.role)
        raise Forbidden("Super admin access required")
    return principal
