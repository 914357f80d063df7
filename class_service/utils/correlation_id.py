"""
Correlation ID utilities for distributed tracing
Shared by the API process and the consumer workers
"""

import uuid
from contextvars import ContextVar
from typing import Dict, Optional

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Context variable holding the correlation ID of the current request or delivery
correlation_id_context: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get the current correlation ID from context
    Generates a new one if none exists

    Returns:
        str: Current correlation ID
    """
    correlation_id = correlation_id_context.get("")
    if not correlation_id:
        correlation_id = create_correlation_id()
        correlation_id_context.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in context"""
    correlation_id_context.set(correlation_id)


def create_correlation_id() -> str:
    return str(uuid.uuid4())


def extract_correlation_id_from_headers(headers: Dict[str, str]) -> Optional[str]:
    """
    Extract correlation ID from request headers (case-insensitive)

    Args:
        headers: Request headers dictionary

    Returns:
        The correlation ID if present, None otherwise
    """
    for name, value in headers.items():
        if name.lower() == CORRELATION_ID_HEADER.lower() and value:
            return value
    return None
