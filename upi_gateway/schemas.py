from pydantic import BaseModel, Field, constr
from typing import Optional, Literal, List
from datetime import datetime
from decimal import Decimal

TxnStatus = Literal["pending", "success", "failed"]
Role = Literal["super_admin", "sub_admin"]

# ---------- Payments ----------
class PaymentCreate(BaseModel):
    amount: Decimal
    description: Optional[constr(strip_whitespace=True, max_length=255)] = None

class PaymentOut(BaseModel):
    txn_id: str
    amount: Decimal
    upi_id: str
    qr_code: str
    status: TxnStatus

    class Config:
        from_attributes = True

class PaymentStatusOut(BaseModel):
    txn_id: str
    status: TxnStatus
    amount: Decimal
    updated_at: datetime

class TransitionOut(BaseModel):
    message: str
    txn_id: str
    status: TxnStatus

class TxOut(BaseModel):
    id: int
    txn_id: str
    amount: Decimal
    description: Optional[str] = None
    status: TxnStatus
    upi_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# ---------- Webhook ----------
class SmsWebhookIn(BaseModel):
    txn_id: constr(strip_whitespace=True, min_length=1)
    status: str                                # "success" | "failed"
    amount: Optional[Decimal] = None           # informational only
    bank_reference: Optional[str] = None

class SmsWebhookOut(BaseModel):
    message: str
    txn_id: str
    status: TxnStatus
    bank_reference: str

# ---------- UPI IDs ----------
class UpiIdCreate(BaseModel):
    identifier: constr(strip_whitespace=True, min_length=1) = Field(..., description="handle@provider")
    active: bool = True

class UpiIdBulkCreate(BaseModel):
    identifiers: List[str] = Field(..., min_length=1)

class UpiIdToggle(BaseModel):
    active: bool

class UpiIdOut(BaseModel):
    id: int
    identifier: str
    active: bool
    last_used_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class BulkResult(BaseModel):
    identifier: str
    status: Literal["success", "error"]
    id: Optional[int] = None
    error: Optional[str] = None

class BulkOut(BaseModel):
    message: str
    results: List[BulkResult]

# ---------- Admins ----------
class LoginIn(BaseModel):
    username: constr(strip_whitespace=True, min_length=1)
    password: str

class AdminOut(BaseModel):
    id: int
    username: str
    role: Role
    active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LoginOut(BaseModel):
    token: str
    token_type: str = "bearer"
    user: AdminOut

class SubAdminCreate(BaseModel):
    username: constr(strip_whitespace=True, min_length=1)
    password: str

class AdminToggle(BaseModel):
    active: bool

# ---------- Analytics ----------
class StatsOut(BaseModel):
    total_revenue: str
    total_transactions: int
    pending_transactions: int
    today_transactions: int

class DailyStat(BaseModel):
    date: str
    transactions: int
    revenue: str

class AnalyticsOut(BaseModel):
    period: str
    total_revenue: str
    total_transactions: int
    successful_transactions: int
    failed_transactions: int
    pending_transactions: int
    average_transaction_value: str
    daily_stats: List[DailyStat]
