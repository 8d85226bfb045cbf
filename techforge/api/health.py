"""
Health probes.

Lightweight endpoints for operational monitoring without exposing secrets.
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from techforge.core.container import Services, get_services
from techforge.core.logging import latency_bucket_ms

logger = logging.getLogger("techforge")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(services: Services = Depends(get_services)):
    """Readiness check: DB connectivity + required tables."""
    start = time.perf_counter()
    connected = services.db.check_connection()
    missing = services.db.missing_tables() if connected else []
    latency_bucket = latency_bucket_ms((time.perf_counter() - start) * 1000)

    ok = connected and not missing
    body = {
        "status": "ok" if ok else "unavailable",
        "db": {"connected": connected, "missing_tables": missing},
        "latency_bucket": latency_bucket,
    }
    if not ok:
        logger.warning("readyz.unavailable", extra={"status": 503})
        return JSONResponse(status_code=503, content=body)
    return body
