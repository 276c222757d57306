# main.py
from __future__ import annotations

import os

import structlog
from fastapi import FastAPI, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from . import __version__
from .admin import router as admin_router
from .db import get_db, init_db
from .errors import GatewayError, NotFound
from .logging_config import setup_logging
from .payments import router as payment_router, webhook_router
from .principals import seed_demo_data

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Env & app
# ---------------------------------------------------------------------------

def _truthy(name: str) -> bool:
    v = os.getenv(name, "")
    return v not in ("", "0", "false", "False", "no", "No")

ENABLE_SEED = _truthy("ENABLE_SEED")

app = FastAPI(
    title="UPI Payment Gateway",
    version=__version__,
    docs_url="/docs",
    redoc_url=None,
    openapi_url="/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

origins = {"http://localhost:5173", "http://localhost:3000"}
frontend_env = os.getenv("FRONTEND_ORIGIN")
if frontend_env and frontend_env != "*":
    origins.add(frontend_env)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.info
    log("request_failed", path=request.url.path, code=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error"},
    )

# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup_event():
    setup_logging()
    init_db()
    logger.info("db_initialized", seed_enabled=ENABLE_SEED)

# ---------------------------------------------------------------------------
# Root, health, seed
# ---------------------------------------------------------------------------

@app.get("/", include_in_schema=False)
def index():
    return RedirectResponse(url="/docs")

@app.get("/healthz", include_in_schema=False)
def healthz():
    return {"ok": True}

@app.post("/seed", status_code=status.HTTP_200_OK)
def seed(db: Session = Depends(get_db)):
    """Demo principals + UPI IDs. Idempotent. 404 unless ENABLE_SEED."""
    if not ENABLE_SEED:
        raise NotFound("Not found")
    created = seed_demo_data(db)
    return {"message": "Seed data created successfully", **created}

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(payment_router)
app.include_router(webhook_router)
app.include_router(admin_router)
