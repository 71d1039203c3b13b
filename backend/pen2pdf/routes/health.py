"""
Pen2PDF Backend: Health Check Route
=====================================

What:  GET /health for Docker health checks, load balancers and monitoring.
How:   SELECT 1 against the database, plus the credential status of every
       AI backend. No model is called: a health probe must not spend quota.

Status levels:
    - healthy:   database reachable, every backend configured (HTTP 200)
    - degraded:  database reachable, some backend unconfigured (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pen2pdf import __version__
from pen2pdf.database import engine
from pen2pdf.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def check_database() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return False


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request):
    db_ok = await check_database()

    generation = getattr(request.app.state, "generation_service", None)
    adapters = generation.adapters if generation is not None else {}
    backends = {
        name: "configured" if adapter.is_configured() else "not_configured"
        for name, adapter in adapters.items()
    }

    if not db_ok:
        overall = "unhealthy"
    elif not backends or "not_configured" in backends.values():
        overall = "degraded"
    else:
        overall = "healthy"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database="connected" if db_ok else "disconnected",
        backends=backends,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if not db_ok:
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
