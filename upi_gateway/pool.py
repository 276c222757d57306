"""
Identifier rotation pool.

Payment addresses (UPI IDs) are handed out least-recently-used first among
the active ones. Selection and the usage mark are two separate statements,
so two concurrent requests can receive the same address; that only skews
rotation fairness, never a transaction's correctness.
"""
import re
from typing import List

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import DuplicateIdentifier, GatewayError, NoAddressAvailable, NotFound, ValidationError
from .models import PaymentAddress, utcnow

logger = structlog.get_logger(__name__)

# handle@provider: no whitespace, exactly one @
_UPI_ID_RE = re.compile(r"^[^\s@]+@[^\s@]+$")


def normalize_identifier(raw: str) -> str:
    ident = (raw or "").strip()
    if not _UPI_ID_RE.match(ident):
        raise ValidationError(f"Invalid UPI ID '{raw}'. Expected handle@provider.", field="identifier")
    return ident


# ---------- Rotation ----------

def select_for_assignment(db: Session) -> PaymentAddress:
    """Active address with the oldest last_used_at; never-used ones first."""
    stmt = (
        select(PaymentAddress)
        .where(PaymentAddress.active.is_(True))
        .order_by(PaymentAddress.last_used_at.asc().nulls_first(), PaymentAddress.id.asc())
        .limit(1)
    )
    address = db.execute(stmt).scalar_one_or_none()
    if address is None:
        logger.error("no_active_address")
        raise NoAddressAvailable()
    return address


def record_usage(db: Session, identifier: str) -> None:
    db.execute(
        update(PaymentAddress)
        .where(PaymentAddress.identifier == identifier)
        .values(last_used_at=utcnow())
    )
    db.commit()


# ---------- Administration ----------

def list_addresses(db: Session) -> List[PaymentAddress]:
    stmt = select(PaymentAddress).order_by(PaymentAddress.created_at.desc(), PaymentAddress.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_address(db: Session, address_id: int) -> PaymentAddress:
    address = db.get(PaymentAddress, address_id)
    if address is None:
        raise NotFound(f"UPI ID {address_id} not found")
    return address


def create_address(db: Session, identifier: str, active: bool = True) -> PaymentAddress:
    ident = normalize_identifier(identifier)
    exists = db.execute(
        select(PaymentAddress.id).where(PaymentAddress.identifier == ident)
    ).first()
    if exists:
        raise DuplicateIdentifier(ident)

    address = PaymentAddress(identifier=ident, active=active)
    db.add(address)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent insert of the same identifier
        db.rollback()
        raise DuplicateIdentifier(ident)
    db.refresh(address)
    logger.info("upi_id_created", identifier=ident, active=active)
    return address


def bulk_create_addresses(db: Session, identifiers: List[str]) -> List[dict]:
    """
    Best-effort batch: each identifier is committed on its own and a failure
    is recorded in the results instead of aborting the rest.
    """
    results = []
    for ident in identifiers:
        try:
            address = create_address(db, ident)
        except GatewayError as e:
            results.append({"identifier": ident, "status": "error", "error": e.message})
        else:
            results.append({"identifier": address.identifier, "status": "success", "id": address.id})
    created = sum(1 for r in results if r["status"] == "success")
    logger.info("upi_id_bulk_created", requested=len(identifiers), created=created)
    return results


def set_active(db: Session, address_id: int, active: bool) -> PaymentAddress:
    address = get_address(db, address_id)
    address.active = active
    db.commit()
    db.refresh(address)
    logger.info("upi_id_toggled", identifier=address.identifier, active=active)
    return address


def delete_address(db: Session, address_id: int) -> None:
    # Transactions keep the identifier string as a label; nothing cascades.
    address = get_address(db, address_id)
    db.delete(address)
    db.commit()
    logger.info("upi_id_deleted", identifier=address.identifier)
