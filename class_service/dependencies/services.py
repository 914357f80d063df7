"""
Service layer dependency injection for FastAPI.

The broker publisher and the cache client are process-wide singletons,
created on first use and closed by shutdown_services(). Repositories and
ClassService instances are cheap and built per request.
"""

from typing import Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorCollection

from class_service.core.config import config
from class_service.core.logger import logger
from class_service.db.mongodb import get_class_collection, get_counters_collection
from class_service.messaging.message_broker_factory import MessageBrokerFactory
from class_service.messaging.topology import BrokerTopology
from class_service.repositories.class_repository import IClassRepository, MongoClassRepository
from class_service.services.cache_service import ICacheService, RedisCacheService
from class_service.services.class_event_publisher import ClassEventPublisher
from class_service.services.class_service import ClassService

_publisher: Optional[ClassEventPublisher] = None
_cache: Optional[ICacheService] = None


def get_class_event_publisher() -> ClassEventPublisher:
    """FastAPI dependency returning the shared (lazily created) publisher"""
    global _publisher
    if _publisher is None:
        _publisher = ClassEventPublisher(
            MessageBrokerFactory.create(),
            BrokerTopology.from_config(),
        )
    return _publisher


def get_cache_service() -> ICacheService:
    """FastAPI dependency returning the shared Redis cache client"""
    global _cache
    if _cache is None:
        _cache = RedisCacheService.from_url(config.redis_url)
    return _cache


async def get_class_repository(
    collection: AsyncIOMotorCollection = Depends(get_class_collection),
    counters: AsyncIOMotorCollection = Depends(get_counters_collection),
) -> IClassRepository:
    return MongoClassRepository(collection, counters)


async def get_class_service(
    repository: IClassRepository = Depends(get_class_repository),
    cache: ICacheService = Depends(get_cache_service),
    publisher: ClassEventPublisher = Depends(get_class_event_publisher),
) -> ClassService:
    """
    FastAPI dependency to get the messaging ClassService.

    Usage:
        @router.post("")
        async def create_class(service: ClassService = Depends(get_class_service)):
            ...
    """
    return ClassService(
        repository,
        cache,
        notifier=publisher,
        cache_namespace=config.cache_namespace,
        cache_ttl_seconds=config.cache_default_ttl_seconds,
    )


async def get_simple_class_service(
    repository: IClassRepository = Depends(get_class_repository),
    cache: ICacheService = Depends(get_cache_service),
) -> ClassService:
    """FastAPI dependency to get the ClassService variant that publishes nothing"""
    return ClassService(
        repository,
        cache,
        notifier=None,
        cache_namespace=config.simple_cache_namespace,
        cache_ttl_seconds=config.cache_default_ttl_seconds,
    )


async def shutdown_services() -> None:
    """Close the shared publisher and cache client"""
    global _publisher, _cache
    if _publisher is not None:
        try:
            _publisher.close()
        except Exception as e:
            logger.warning(f"Error closing class event publisher: {e}")
        _publisher = None
    if _cache is not None:
        await _cache.close()
        _cache = None
