from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, Boolean

from .db import Base

TXN_PENDING = "pending"
TXN_SUCCESS = "success"
TXN_FAILED = "failed"
TXN_STATUSES = (TXN_PENDING, TXN_SUCCESS, TXN_FAILED)
TERMINAL_STATUSES = (TXN_SUCCESS, TXN_FAILED)

ROLE_SUPER_ADMIN = "super_admin"
ROLE_SUB_ADMIN = "sub_admin"
ROLES = (ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN)


def utcnow() -> datetime:
    """Naive UTC timestamp; every column below stores UTC without tz info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PaymentAddress(Base):
    __tablename__ = "upi_ids"
    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), unique=True, index=True, nullable=False)  # e.g. shop@phonepe
    active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(DateTime, nullable=True, index=True)              # drives LRU rotation
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    txn_id = Column(String(64), unique=True, index=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text)
    status = Column(String(16), index=True, nullable=False, default=TXN_PENDING)  # pending | success | failed
    upi_id = Column(String(255), nullable=False)                           # label only, not a foreign key
    qr_code = Column(Text)                                                  # data:image/png;base64,...
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class AdminUser(Base):
    __tablename__ = "admin_users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String(128), nullable=False)                    # bcrypt
    role = Column(String(16), nullable=False)                              # super_admin | sub_admin
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_login_at = Column(DateTime, nullable=True)

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN
