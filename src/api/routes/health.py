"""Health check endpoint."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from adapter.mongodb.connection import MongoConnection, get_mongo_connection
from api.dependencies import get_rate_limiter
from port.rate_limiter import RateLimiterPort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(
    rate_limiter: RateLimiterPort = Depends(get_rate_limiter),
    connection: MongoConnection = Depends(get_mongo_connection),
):
    """Health check endpoint with dependency status.

    MongoDB is required; Redis only backs rate limiting, so losing it
    degrades the report without failing the check.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        "services": {}
    }

    overall_healthy = True

    try:
        if connection.get_client():
            health_status["services"]["mongodb"] = {
                "status": "healthy",
                "message": "Connection successful"
            }
        else:
            health_status["services"]["mongodb"] = {
                "status": "unhealthy",
                "message": "Connection failed or not configured"
            }
            overall_healthy = False
    except Exception as e:
        health_status["services"]["mongodb"] = {
            "status": "unhealthy",
            "message": f"Connection error: {str(e)[:200]}"
        }
        overall_healthy = False

    if rate_limiter.ping():
        health_status["services"]["redis"] = {
            "status": "healthy",
            "message": "Connection successful"
        }
    else:
        health_status["services"]["redis"] = {
            "status": "degraded",
            "message": "Unavailable, rate limiting disabled"
        }
        health_status["status"] = "degraded"

    if not overall_healthy:
        health_status["status"] = "unhealthy"

    status_code = status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        content=health_status,
        status_code=status_code
    )
