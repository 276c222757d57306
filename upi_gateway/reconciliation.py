"""
Status reconciliation gateway.

Every way a transaction can leave ``pending`` goes through here and ends in
``ledger.transition``:

- admin confirm / reject (authenticated principal, either role)
- external notification (SMS webhook simulator, unauthenticated)
- demo "simulate success", which is just an external notification with a
  different source tag
"""
import time
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from . import ledger
from .errors import InvalidStatus
from .models import AdminUser, Transaction, TERMINAL_STATUSES, TXN_FAILED, TXN_SUCCESS

logger = structlog.get_logger(__name__)


def confirm(db: Session, txn_id: str, principal: AdminUser) -> Transaction:
    return ledger.transition(db, txn_id, TXN_SUCCESS, source=f"admin:{principal.username}")


def reject(db: Session, txn_id: str, principal: AdminUser) -> Transaction:
    return ledger.transition(db, txn_id, TXN_FAILED, source=f"admin:{principal.username}")


def reconcile_from_external_notification(
    db: Session,
    txn_id: str,
    reported_status: str,
    reference: Optional[str] = None,
    source: str = "sms_webhook",
) -> dict:
    """
    Apply a bank/SMS style notification.

    Raises NotFound for an unknown transaction, InvalidStatus when the
    reported status is not success/failed, and AlreadyFinalized (an
    InvalidStatus too) when the transaction is no longer pending.
    """
    status = (reported_status or "").strip().lower()
    logger.info("external_notification_received", txn_id=txn_id, reported_status=status, source=source)

    # unknown transaction wins over a bad status
    ledger.get_transaction(db, txn_id)
    if status not in TERMINAL_STATUSES:
        raise InvalidStatus(
            f"Invalid status '{reported_status}'. Allowed: success, failed.", field="status"
        )

    txn = ledger.transition(db, txn_id, status, source=source)
    return {
        "txn_id": txn.txn_id,
        "status": txn.status,
        "bank_reference": reference or f"REF{int(time.time() * 1000)}",
        "message": f"Payment {'confirmed' if status == TXN_SUCCESS else 'failed'} via {source}",
    }


def get_status(db: Session, txn_id: str) -> dict:
    txn = ledger.get_transaction(db, txn_id)
    return {
        "txn_id": txn.txn_id,
        "status": txn.status,
        "amount": txn.amount,
        "updated_at": txn.updated_at,
    }
