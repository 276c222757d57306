"""
Admin principals: login, sub-admin management and the demo seed.

Roles are fixed at creation; there is no promotion path.
"""
import os
from typing import List, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import pool
from .auth import create_token, hash_password, verify_password
from .errors import DuplicateUsername, DuplicateIdentifier, NotFound, Unauthenticated, ValidationError
from .models import AdminUser, ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN, ROLES, utcnow

logger = structlog.get_logger(__name__)

SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "123456")
DEMO_UPI_IDS = ("demo@ybl", "merchant@paytm", "shop@phonepe", "store@gpay")


def authenticate(db: Session, username: str, password: str) -> Tuple[str, AdminUser]:
    """Exchange credentials for a bearer token. Inactive principals cannot log in."""
    principal = db.execute(
        select(AdminUser).where(AdminUser.username == username, AdminUser.active.is_(True))
    ).scalar_one_or_none()
    if principal is None or not verify_password(password, principal.password_hash):
        logger.warning("admin_login_failed", username=username)
        raise Unauthenticated("Invalid credentials")

    principal.last_login_at = utcnow()
    db.commit()
    db.refresh(principal)
    logger.info("admin_login", username=principal.username, role=principal.role)
    return create_token(principal), principal


def create_principal(db: Session, username: str, password: str, role: str) -> AdminUser:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required", field="username")
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters", field="password")
    if role not in ROLES:
        raise ValidationError(f"Invalid role '{role}'", field="role")

    exists = db.execute(select(AdminUser.id).where(AdminUser.username == username)).first()
    if exists:
        raise DuplicateUsername(username)

    principal = AdminUser(
        username=username,
        password_hash=hash_password(password),
        role=role,
        active=True,
    )
    db.add(principal)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateUsername(username)
    db.refresh(principal)
    logger.info("admin_created", username=username, role=role)
    return principal


def create_sub_admin(db: Session, username: str, password: str) -> AdminUser:
    return create_principal(db, username, password, ROLE_SUB_ADMIN)


def list_sub_admins(db: Session) -> List[AdminUser]:
    stmt = (
        select(AdminUser)
        .where(AdminUser.role == ROLE_SUB_ADMIN)
        .order_by(AdminUser.created_at.desc(), AdminUser.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def set_sub_admin_active(db: Session, principal_id: int, active: bool) -> AdminUser:
    principal = db.get(AdminUser, principal_id)
    if principal is None or principal.role != ROLE_SUB_ADMIN:
        raise NotFound(f"Sub-admin {principal_id} not found")
    principal.active = active
    db.commit()
    db.refresh(principal)
    logger.info("admin_toggled", username=principal.username, active=active)
    return principal


def seed_demo_data(db: Session) -> dict:
    """Idempotent: existing principals and UPI IDs are left untouched."""
    created_admins = []
    for username, role in (("superadmin", ROLE_SUPER_ADMIN), ("subadmin", ROLE_SUB_ADMIN)):
        try:
            create_principal(db, username, SEED_ADMIN_PASSWORD, role)
        except DuplicateUsername:
            continue
        created_admins.append(username)

    created_ids = []
    for ident in DEMO_UPI_IDS:
        try:
            pool.create_address(db, ident)
        except DuplicateIdentifier:
            continue
        created_ids.append(ident)

    logger.info("demo_data_seeded", admins=created_admins, upi_ids=created_ids)
    return {"admins": created_admins, "upi_ids": created_ids}
