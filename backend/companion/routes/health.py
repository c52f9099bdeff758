"""
Companion Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database, the payments circuit breaker and whether object
       storage is configured, then reports an aggregate status.

Status levels:
    - healthy:   Everything operational
    - degraded:  Payments circuit open or Stripe/S3 unconfigured; the API
                 still serves reads and non-payment writes
    - unhealthy: Database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from companion import __version__
from companion.database import engine
from companion.schemas.common import HealthResponse
from companion.services.stripe_service import CircuitBreaker, payment_gateway
from companion.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health status of the backend service and its dependencies. "
        "Used by container health checks and load balancers."
    ),
)
async def health_check(response: Response) -> HealthResponse:
    """
    Lightweight probes only: `SELECT 1` for the database; the payments
    check reads local circuit breaker state and never calls Stripe.
    """
    db_status = "connected"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Payments ────────────────────────────────────────────────────
    if not payment_gateway.is_configured:
        payments_status = "unconfigured"
    elif payment_gateway.circuit_state() == CircuitBreaker.OPEN:
        payments_status = "circuit_open"
    else:
        payments_status = "available"
    if payments_status != "available" and overall == "healthy":
        overall = "degraded"

    # ── Check Storage ─────────────────────────────────────────────────────
    storage_status = "configured" if storage_service.is_configured else "unconfigured"
    if storage_status != "configured" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        payments=payments_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
