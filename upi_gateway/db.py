# upi_gateway/db.py
import os
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

# ---------- Connection URL ----------

def _normalize_db_url(raw: Optional[str]) -> str:
    """
    Unset means a local SQLite file. Postgres URLs are pinned to the psycopg 3
    driver, and remote hosts get sslmode=require unless one is already given.
    """
    db_url = (raw or "").strip()

    if not db_url:
        return "sqlite:///./app.db"

    db_url = db_url.replace("postgres://", "postgresql://", 1)

    # a bare scheme means no driver was chosen
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)

    if (
        db_url.startswith("postgresql")
        and "localhost" not in db_url
        and "127.0.0.1" not in db_url
        and "sslmode=" not in db_url
    ):
        db_url += ("&" if "?" in db_url else "?") + "sslmode=require"

    return db_url


DATABASE_URL = _normalize_db_url(os.getenv("DATABASE_URL"))


def _connect_args(url: str) -> dict:
    # SQLite connections are shared across the request threadpool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# ---------- Engine and sessions ----------

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(DATABASE_URL),
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session and ensures close."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables if they don't exist yet."""
    from . import models  # noqa: F401  ensure models are registered
    Base.metadata.create_all(bind=engine)
