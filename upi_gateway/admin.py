# admin.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status as http_status
from sqlalchemy.orm import Session

from . import analytics, ledger, pool, principals
from .auth import require_admin, require_super_admin
from .db import get_db
from .models import AdminUser
from .schemas import (
    LoginIn, LoginOut, AdminOut, SubAdminCreate, AdminToggle,
    StatsOut, AnalyticsOut, TxOut,
    UpiIdCreate, UpiIdBulkCreate, UpiIdToggle, UpiIdOut, BulkOut,
)

router = APIRouter(prefix="/admin", tags=["admin"])

# ---------- Auth ----------

@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    token, principal = principals.authenticate(db, payload.username, payload.password)
    return LoginOut(token=token, user=AdminOut.model_validate(principal))


@router.get("/me", response_model=AdminOut)
def me(principal: AdminUser = Depends(require_admin)):
    return principal

# ---------- Dashboards (any admin) ----------

@router.get("/stats", response_model=StatsOut)
def get_stats(db: Session = Depends(get_db), _: AdminUser = Depends(require_admin)):
    return analytics.stats(db)


@router.get("/analytics", response_model=AnalyticsOut)
def get_analytics(
    period: str = Query(analytics.DEFAULT_PERIOD, description="24h | 7d | 30d"),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_admin),
):
    start, end = analytics.period_window(period)
    return {"period": period, **analytics.summarize(db, start, end)}


@router.get("/transactions", response_model=List[TxOut])
def list_transactions(db: Session = Depends(get_db), _: AdminUser = Depends(require_admin)):
    return ledger.list_transactions(db)


# ⬇️ Specific routes before any dynamic /transactions/{...}
@router.get("/transactions/pending", response_model=List[TxOut])
def list_pending(db: Session = Depends(get_db), _: AdminUser = Depends(require_admin)):
    return ledger.list_pending(db)


@router.get("/transactions/history", response_model=List[TxOut])
def transaction_history(
    status_filter: Optional[str] = Query(None, alias="status", description="pending|success|failed"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_admin),
):
    return ledger.transaction_history(
        db, status=status_filter, start=start_date, end=end_date, limit=limit
    )

# ---------- UPI IDs (super admin) ----------

@router.get("/upiids", response_model=List[UpiIdOut])
def list_upi_ids(db: Session = Depends(get_db), _: AdminUser = Depends(require_super_admin)):
    return pool.list_addresses(db)


@router.post("/upiids", response_model=UpiIdOut, status_code=http_status.HTTP_201_CREATED)
def create_upi_id(
    payload: UpiIdCreate,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    return pool.create_address(db, payload.identifier, active=payload.active)


@router.post("/upiids/bulk", response_model=BulkOut)
def bulk_create_upi_ids(
    payload: UpiIdBulkCreate,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    """
    Best effort: 200 even when some identifiers fail; check each result.
    """
    results = pool.bulk_create_addresses(db, payload.identifiers)
    return BulkOut(message="Bulk UPI ID creation completed", results=results)


@router.patch("/upiids/{address_id}/toggle", response_model=UpiIdOut)
def toggle_upi_id(
    address_id: int,
    payload: UpiIdToggle,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    return pool.set_active(db, address_id, payload.active)


@router.delete("/upiids/{address_id}", status_code=http_status.HTTP_204_NO_CONTENT)
def delete_upi_id(
    address_id: int,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    pool.delete_address(db, address_id)
    return None

# ---------- Sub-admins (super admin) ----------

@router.get("/subadmins", response_model=List[AdminOut])
def list_sub_admins(db: Session = Depends(get_db), _: AdminUser = Depends(require_super_admin)):
    return principals.list_sub_admins(db)


@router.post("/subadmins", response_model=AdminOut, status_code=http_status.HTTP_201_CREATED)
def create_sub_admin(
    payload: SubAdminCreate,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    return principals.create_sub_admin(db, payload.username, payload.password)


@router.patch("/subadmins/{principal_id}/toggle", response_model=AdminOut)
def toggle_sub_admin(
    principal_id: int,
    payload: AdminToggle,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(require_super_admin),
):
    return principals.set_sub_admin_active(db, principal_id, payload.active)
