from .cache_service import ICacheService, RedisCacheService, cache_key
from .class_event_publisher import ClassEventPublisher, PublishOutcome
from .class_service import ClassService

__all__ = [
    "ICacheService",
    "RedisCacheService",
    "cache_key",
    "ClassEventPublisher",
    "PublishOutcome",
    "ClassService",
]
