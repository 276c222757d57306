"""
Payment request service: turns an amount into a pending transaction with a
UPI QR code pointing at the next address in the rotation pool.
"""
import os
import secrets
import string
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Optional
from urllib.parse import quote, urlencode

import structlog
from sqlalchemy.orm import Session

from . import ledger, pool
from .errors import InvalidAmount, RenderingFailed
from .models import Transaction
from .qr import render_data_url

logger = structlog.get_logger(__name__)

UPI_PAYEE_NAME = os.getenv("UPI_PAYEE_NAME", "Demo Merchant")
UPI_CURRENCY = os.getenv("UPI_CURRENCY", "INR")

# Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")
CENTS = Decimal("0.01")

_SUFFIX_ALPHABET = string.ascii_letters + string.digits


def normalize_amount(raw) -> Decimal:
    """Two-decimal fixed point, strictly positive."""
    try:
        amount = Decimal(str(raw)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount("Amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount()
    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"Amount must not exceed {MAX_AMOUNT}")
    return amount


def generate_txn_id() -> str:
    """TXN + epoch millis + 6 random characters."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"TXN{int(time.time() * 1000)}{suffix}"


def build_upi_uri(
    address: str,
    amount: Decimal,
    txn_id: str,
    note: Optional[str] = None,
    payee_name: str = UPI_PAYEE_NAME,
    currency: str = UPI_CURRENCY,
) -> str:
    params = [
        ("pa", address),
        ("pn", payee_name),
        ("am", f"{amount:.2f}"),
        ("cu", currency),
        ("tr", txn_id),
    ]
    if note:
        params.append(("tn", note))
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


def create_request(
    db: Session,
    amount,
    description: Optional[str] = None,
    renderer: Callable[[str], str] = render_data_url,
) -> Transaction:
    amount = normalize_amount(amount)
    description = (description or "").strip() or None

    address = pool.select_for_assignment(db)
    txn_id = generate_txn_id()
    uri = build_upi_uri(address.identifier, amount, txn_id, note=description)

    # abort before anything is written
    try:
        qr_code = renderer(uri)
    except Exception:
        logger.exception("qr_rendering_failed", txn_id=txn_id)
        raise RenderingFailed("QR rendering failed")

    txn = ledger.insert_transaction(
        db,
        txn_id=txn_id,
        amount=amount,
        upi_id=address.identifier,
        qr_code=qr_code,
        description=description,
    )
    pool.record_usage(db, address.identifier)

    logger.info("payment_request_created", txn_id=txn.txn_id, amount=str(amount), upi_id=address.identifier)
    return txn
