import logging

import redis
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/readiness")
def readiness(request: Request):
    """Readiness probe that checks the credential store is reachable."""
    client = getattr(request.app.state, "redis_client", None)
    if client is None:
        return {"status": "ready", "checks": {"store": "not_checked"}}

    try:
        client.ping()
    except (redis.TimeoutError, redis.ConnectionError) as e:
        logger.warning("Credential store not reachable", extra={"error_type": type(e).__name__})
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "checks": {"store": "error"}},
        )
    return {"status": "ready", "checks": {"store": "ok"}}
