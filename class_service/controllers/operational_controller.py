"""
Operational/Infrastructure endpoints
These endpoints are used by monitoring systems, load balancers, and DevOps tools
"""

import time
from datetime import datetime

from fastapi.responses import JSONResponse

from class_service.core.config import config
from class_service.core.logger import logger
from class_service.db.mongodb import ping_db
from class_service.services.cache_service import ICacheService
from class_service.services.class_event_publisher import ClassEventPublisher

start_time = time.time()


def health():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "timestamp": datetime.now().isoformat(),
        "version": config.service_version,
    }


async def readiness(publisher: ClassEventPublisher, cache: ICacheService):
    """Readiness probe - broker, cache and database must all answer"""
    checks = {}

    checks["broker"] = "connected" if publisher.is_healthy() else "disconnected"

    try:
        checks["cache"] = "connected" if await cache.ping() else "disconnected"
    except Exception as e:
        logger.warning(f"Cache readiness check failed: {e}")
        checks["cache"] = "disconnected"

    checks["database"] = "connected" if await ping_db() else "disconnected"

    body = {
        "service": config.service_name,
        "timestamp": datetime.now().isoformat(),
        "checks": checks,
    }

    if all(state == "connected" for state in checks.values()):
        return {"status": "ready", **body}

    logger.error("Readiness check failed", metadata={"checks": checks})
    return JSONResponse(status_code=503, content={"status": "not ready", **body})


def liveness():
    """Liveness probe - check if the app is running"""
    return {
        "status": "alive",
        "service": config.service_name,
        "timestamp": datetime.now().isoformat(),
        "uptime": time.time() - start_time,
    }


async def queue_stats(publisher: ClassEventPublisher):
    """Main queue and dead-letter queue depths"""
    try:
        stats = await publisher.get_queue_stats()
    except Exception as e:
        logger.error(f"Error getting queue stats: {e}", error=e)
        return JSONResponse(
            status_code=503,
            content={"error": "Message broker not available", "details": {"reason": str(e)}},
        )
    return {
        "timestamp": datetime.now().isoformat(),
        "queues": stats,
    }
