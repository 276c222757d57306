"""
Read-only rollups over the ledger for the admin dashboards.
"""
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import Transaction, TXN_FAILED, TXN_PENDING, TXN_SUCCESS, utcnow

CENTS = Decimal("0.01")

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_PERIOD = "7d"


def _money(value) -> str:
    if value is None:
        return "0.00"
    return str(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))


def period_window(period: str, now: datetime = None) -> Tuple[datetime, datetime]:
    if period not in PERIODS:
        raise ValidationError(
            f"Invalid period '{period}'. Allowed: {', '.join(PERIODS)}.", field="period"
        )
    end = now or utcnow()
    return end - PERIODS[period], end


def stats(db: Session, now: datetime = None) -> dict:
    """Dashboard counters: success revenue, total, pending and today's count."""
    now = now or utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    row = db.execute(
        select(
            func.sum(case((Transaction.status == TXN_SUCCESS, Transaction.amount), else_=0)),
            func.count(Transaction.id),
            func.sum(case((Transaction.status == TXN_PENDING, 1), else_=0)),
            func.sum(case((Transaction.created_at >= today, 1), else_=0)),
        )
    ).one()

    return {
        "total_revenue": _money(row[0]),
        "total_transactions": int(row[1] or 0),
        "pending_transactions": int(row[2] or 0),
        "today_transactions": int(row[3] or 0),
    }


def summarize(db: Session, start: datetime, end: datetime) -> dict:
    rows = db.execute(
        select(Transaction.status, Transaction.amount, Transaction.created_at)
        .where(Transaction.created_at >= start, Transaction.created_at <= end)
        .order_by(Transaction.created_at.asc())
    ).all()

    counts = {TXN_SUCCESS: 0, TXN_FAILED: 0, TXN_PENDING: 0}
    revenue = Decimal("0")
    daily = {}

    for status, amount, created_at in rows:
        counts[status] = counts.get(status, 0) + 1
        day = daily.setdefault(created_at.date().isoformat(), {"transactions": 0, "revenue": Decimal("0")})
        day["transactions"] += 1
        if status == TXN_SUCCESS:
            revenue += Decimal(str(amount))
            day["revenue"] += Decimal(str(amount))

    successes = counts[TXN_SUCCESS]
    average = _money(revenue / successes) if successes else "0"

    return {
        "total_revenue": _money(revenue),
        "total_transactions": len(rows),
        "successful_transactions": successes,
        "failed_transactions": counts[TXN_FAILED],
        "pending_transactions": counts[TXN_PENDING],
        "average_transaction_value": average,
        "daily_stats": [
            {"date": date, "transactions": d["transactions"], "revenue": _money(d["revenue"])}
            for date, d in daily.items()
        ],
    }
