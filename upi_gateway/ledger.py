"""
Transaction ledger.

The single writer of Transaction.status. A transition is one conditional
UPDATE guarded by ``status = 'pending'``; whoever loses a race updates zero
rows and gets AlreadyFinalized, so admin confirm, the SMS webhook and the
demo simulator can fire concurrently from any number of processes.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import AlreadyFinalized, Conflict, InvalidStatus, NotFound
from .models import Transaction, TERMINAL_STATUSES, TXN_PENDING, TXN_STATUSES, utcnow

logger = structlog.get_logger(__name__)


def insert_transaction(
    db: Session,
    txn_id: str,
    amount: Decimal,
    upi_id: str,
    qr_code: str,
    description: Optional[str] = None,
) -> Transaction:
    now = utcnow()
    txn = Transaction(
        txn_id=txn_id,
        amount=amount,
        description=description,
        upi_id=upi_id,
        qr_code=qr_code,
        status=TXN_PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(txn)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Transaction id {txn_id} already exists", field="txn_id")
    db.refresh(txn)
    return txn


def get_transaction(db: Session, txn_id: str) -> Transaction:
    # populate_existing: status may have changed under a Core UPDATE
    stmt = (
        select(Transaction)
        .where(Transaction.txn_id == txn_id)
        .execution_options(populate_existing=True)
    )
    txn = db.execute(stmt).scalar_one_or_none()
    if txn is None:
        raise NotFound(f"Transaction {txn_id} not found")
    return txn


def transition(db: Session, txn_id: str, new_status: str, source: str) -> Transaction:
    """
    Move a pending transaction to a terminal status.

    Raises NotFound if the transaction does not exist and AlreadyFinalized if
    it is no longer pending when the write lands.
    """
    if new_status not in TERMINAL_STATUSES:
        raise InvalidStatus(f"Cannot transition to '{new_status}'", field="status")

    result = db.execute(
        update(Transaction)
        .where(Transaction.txn_id == txn_id, Transaction.status == TXN_PENDING)
        .values(status=new_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    updated = result.rowcount
    db.commit()

    if updated == 0:
        current = get_transaction(db, txn_id)
        logger.warning(
            "transition_rejected",
            txn_id=txn_id,
            requested=new_status,
            current=current.status,
            source=source,
        )
        raise AlreadyFinalized(txn_id, current.status)

    txn = get_transaction(db, txn_id)
    logger.info("transaction_transitioned", txn_id=txn_id, status=new_status, source=source)
    return txn


# ---------- Listings ----------

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def list_transactions(db: Session) -> List[Transaction]:
    stmt = select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc())
    return list(db.execute(stmt).scalars().all())


def list_pending(db: Session) -> List[Transaction]:
    stmt = (
        select(Transaction)
        .where(Transaction.status == TXN_PENDING)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def transaction_history(
    db: Session,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
) -> List[Transaction]:
    stmt = select(Transaction)
    start, end = _naive_utc(start), _naive_utc(end)
    if status:
        if status not in TXN_STATUSES:
            raise InvalidStatus(
                f"Invalid status '{status}'. Allowed: pending, success, failed.", field="status"
            )
        stmt = stmt.where(Transaction.status == status)
    if start is not None:
        stmt = stmt.where(Transaction.created_at >= start)
    if end is not None:
        stmt = stmt.where(Transaction.created_at <= end)
    stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())
