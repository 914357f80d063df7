from .services import (
    get_cache_service,
    get_class_event_publisher,
    get_class_repository,
    get_class_service,
    get_simple_class_service,
    shutdown_services,
)

__all__ = [
    "get_cache_service",
    "get_class_event_publisher",
    "get_class_repository",
    "get_class_service",
    "get_simple_class_service",
    "shutdown_services",
]
