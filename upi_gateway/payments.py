# payments.py
from __future__ import annotations

import os

from fastapi import APIRouter, Depends, status as http_status
from sqlalchemy.orm import Session

from .auth import require_admin
from .db import get_db
from .errors import NotFound
from .models import AdminUser
from .payment_service import create_request
from .reconciliation import confirm, get_status, reconcile_from_external_notification, reject
from .schemas import (
    PaymentCreate, PaymentOut, PaymentStatusOut,
    TransitionOut, SmsWebhookIn, SmsWebhookOut,
)

# Demo-only "simulate payment success" button
DEMO_MODE = os.getenv("DEMO_MODE", "").lower() in {"1", "true", "yes"}

router = APIRouter(prefix="/payment", tags=["payment"])
webhook_router = APIRouter(prefix="/webhook", tags=["webhook"])

# ---------- Public ----------

@router.post("/generate", response_model=PaymentOut, status_code=http_status.HTTP_201_CREATED)
def generate_payment(payload: PaymentCreate, db: Session = Depends(get_db)):
    """
    Create a pending transaction on the next UPI ID in rotation and return
    its QR code. 400 on a non-positive amount, 503 when no UPI ID is active.
    """
    return create_request(db, payload.amount, payload.description)


@router.get("/status/{txn_id}", response_model=PaymentStatusOut)
def payment_status(txn_id: str, db: Session = Depends(get_db)):
    """Polled by the payment page; no side effects."""
    return get_status(db, txn_id)


@router.post("/simulate/{txn_id}", response_model=SmsWebhookOut)
def simulate_success(txn_id: str, db: Session = Depends(get_db)):
    """
    Demo shortcut for "I have paid". Goes through the same path as the SMS
    webhook so it cannot override an admin decision. 404 unless DEMO_MODE.
    """
    if not DEMO_MODE:
        raise NotFound("Not found")
    return reconcile_from_external_notification(db, txn_id, "success", source="simulator")

# ---------- Admin ----------

@router.post("/confirm/{txn_id}", response_model=TransitionOut)
def confirm_payment(
    txn_id: str,
    db: Session = Depends(get_db),
    principal: AdminUser = Depends(require_admin),
):
    txn = confirm(db, txn_id, principal)
    return TransitionOut(message="Payment confirmed successfully", txn_id=txn.txn_id, status=txn.status)


@router.post("/reject/{txn_id}", response_model=TransitionOut)
def reject_payment(
    txn_id: str,
    db: Session = Depends(get_db),
    principal: AdminUser = Depends(require_admin),
):
    txn = reject(db, txn_id, principal)
    return TransitionOut(message="Payment rejected successfully", txn_id=txn.txn_id, status=txn.status)

# ---------- Webhook ----------

@webhook_router.post("/sms", response_model=SmsWebhookOut)
def sms_webhook(payload: SmsWebhookIn, db: Session = Depends(get_db)):
    """Simulated bank SMS notification. No auth: the sender is trusted."""
    return reconcile_from_external_notification(
        db, payload.txn_id, payload.status, reference=payload.bank_reference
    )
