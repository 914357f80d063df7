"""
Error types and FastAPI error handlers for the Class Service
"""

import traceback
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from class_service.core.config import config
from class_service.core.logger import logger


class ErrorResponse(Exception):
    """Base exception for application errors rendered as JSON responses"""

    def __init__(self, message: str, status_code: int = 400, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ClassNotFoundError(ErrorResponse):
    """The requested class does not exist"""

    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__(
            f"Class not found with id: {class_id}",
            status_code=404,
            details={"classId": class_id},
        )


class PersistenceError(ErrorResponse):
    """The underlying store failed"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)


class EventValidationError(Exception):
    """A message body could not be decoded into a ClassEvent"""


class PoisonMessageError(Exception):
    """A message carries a synthetic failure directive or marker"""

    def __init__(self, marker: str, entity_id: Optional[int] = None):
        self.marker = marker
        self.entity_id = entity_id
        super().__init__(f"Poison message detected ({marker}) for class ID: {entity_id}")


class TransientDeliveryError(Exception):
    """A publish did not reach the broker with a positive confirmation"""


class PublishNackError(TransientDeliveryError):
    """The broker negatively acknowledged a publish"""


class PublishTimeoutError(TransientDeliveryError):
    """No publish confirmation arrived in time"""


class UnroutableMessageError(TransientDeliveryError):
    """The broker accepted the message but no queue binding matched"""


class BrokerConnectionError(TransientDeliveryError):
    """The broker could not be reached or the channel was closed"""


class ErrorResponseModel(BaseModel):
    """Pydantic model for error responses"""
    error: str
    details: Optional[dict] = None


async def error_response_handler(request: Request, exc: ErrorResponse):
    """Handler for custom ErrorResponse exceptions"""
    metadata = {
        "event": "error_response",
        "status_code": exc.status_code,
        "url": str(request.url),
        "method": request.method,
        **exc.details,
    }

    if config.environment == "development":
        metadata["traceback"] = traceback.format_exc()

    logger.error(f"Error: {exc.message}", metadata=metadata)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handler for FastAPI HTTPException"""
    logger.error(
        f"HTTPException: {exc.detail}",
        metadata={
            "event": "http_exception",
            "status_code": exc.status_code,
            "url": str(request.url),
            "method": request.method,
        },
    )

    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
