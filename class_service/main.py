"""
Class Service API
FastAPI application: class CRUD (with and without messaging), DLQ diagnostics
and operational endpoints.
"""

import asyncio

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from class_service.controllers import operational_controller
from class_service.core.config import config
from class_service.core.errors import (
    ErrorResponse,
    error_response_handler,
    http_exception_handler,
)
from class_service.core.logger import logger
from class_service.db.mongodb import close_client
from class_service.dependencies.services import (
    get_cache_service,
    get_class_event_publisher,
    shutdown_services,
)
from class_service.middlewares import CorrelationIdMiddleware
from class_service.routers import class_router, class_simple_router, dlq_test_router
from class_service.services.cache_service import ICacheService
from class_service.services.class_event_publisher import ClassEventPublisher

app = FastAPI(title="Class Service", version=config.service_version)

# Add correlation ID middleware first
app.add_middleware(CorrelationIdMiddleware)

# Register centralized error handlers
app.add_exception_handler(ErrorResponse, error_response_handler)
app.add_exception_handler(HTTPException, http_exception_handler)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(
        f"Validation error: {exc.errors()}",
        metadata={"businessEvent": "VALIDATION_ERROR", "errors": exc.errors()}
    )
    return JSONResponse(
        status_code=422, content={"error": "Validation error", "details": exc.errors()}
    )


@app.on_event("startup")
async def startup_event():
    """Connect the publisher and declare the topology; the API still starts without a broker"""
    publisher = get_class_event_publisher()
    try:
        await asyncio.to_thread(publisher.start)
    except Exception as error:
        logger.warning(
            "Message broker not available at startup, publishing will reconnect on demand",
            metadata={"operation": "startup", "error": str(error)}
        )


@app.on_event("shutdown")
async def shutdown_event():
    await shutdown_services()
    close_client()


# Include routers
app.include_router(class_router, prefix="/api/v1/classes", tags=["classes"])
app.include_router(class_simple_router, prefix="/api/v1/classes-simple", tags=["classes-simple"])
app.include_router(dlq_test_router, prefix="/api/v1/test/dlq", tags=["dlq-testing"])


@app.get("/health/ready")
async def readiness_endpoint(
    publisher: ClassEventPublisher = Depends(get_class_event_publisher),
    cache: ICacheService = Depends(get_cache_service),
):
    return await operational_controller.readiness(publisher, cache)


@app.get("/api/v1/queues/stats")
async def queue_stats_endpoint(publisher: ClassEventPublisher = Depends(get_class_event_publisher)):
    """Main queue and dead-letter queue depths"""
    return await operational_controller.queue_stats(publisher)


# Operational endpoints for infrastructure/monitoring
app.get("/health")(operational_controller.health)
app.get("/health/live")(operational_controller.liveness)


if __name__ == "__main__":
    logger.info(f"Class API service starting on port {config.port}")

    # Log startup configuration
    logger.info(
        "Service configuration",
        metadata={
            "service": {
                "name": config.service_name,
                "version": config.service_version,
                "environment": config.environment,
                "port": config.port,
            },
            "messaging": {
                "brokerType": config.message_broker_type,
                "exchange": config.class_exchange_name,
                "queue": config.class_queue_name,
            },
        }
    )

    uvicorn.run("class_service.main:app", host=config.host, port=config.port)
