"""
Readiness endpoint.

Liveness (/ping, /healthz) is answered by RequestGateMiddleware before
routing, so it never touches the database.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from chatgate.core.database import get_engine

logger = logging.getLogger("chatgate")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "subscription_types",
    "app_users",
    "quota_counters",
    "chats",
    "chat_messages",
    "admin_audit",
]


@root_router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok"}
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
