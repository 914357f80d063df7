"""
Core utilities package.

- config: environment-driven settings
- logger: structured logging with correlation IDs
- errors: exception taxonomy and FastAPI handlers
"""

from .config import Config, config
from .errors import (
    BrokerConnectionError,
    ClassNotFoundError,
    ErrorResponse,
    ErrorResponseModel,
    EventValidationError,
    PersistenceError,
    PoisonMessageError,
    PublishNackError,
    PublishTimeoutError,
    TransientDeliveryError,
    UnroutableMessageError,
    error_response_handler,
    http_exception_handler,
)
from .logger import logger

__all__ = [
    "Config",
    "config",
    "logger",
    "ErrorResponse",
    "ErrorResponseModel",
    "ClassNotFoundError",
    "PersistenceError",
    "EventValidationError",
    "PoisonMessageError",
    "TransientDeliveryError",
    "PublishNackError",
    "PublishTimeoutError",
    "UnroutableMessageError",
    "BrokerConnectionError",
    "error_response_handler",
    "http_exception_handler",
]
