"""
Class service: orchestrates persistence, cache and event publishing.

Every mutation runs one sequential path:

    repository write -> cache seed/evict -> publish notification

Reads are cache-aside: a hit returns straight from the cache, a miss reads
the repository and fills the cache. No lock is held across the three steps,
so a crash in between leaves partial progress (persisted but not cached, or
persisted but not published); the cache is rewritten by the next write to
the same key.

The same class runs without a notifier for the non-messaging variant. It
must then use its own cache namespace.
"""

from typing import List, Optional

from pydantic import ValidationError

from class_service.core.config import config
from class_service.core.errors import ClassNotFoundError
from class_service.core.logger import logger
from class_service.models.class_event import EventAction
from class_service.models.school_class import ClassCreate, ClassDB, ClassResponse, ClassUpdate
from class_service.repositories.class_repository import IClassRepository
from class_service.services.cache_service import ICacheService, cache_key
from class_service.services.class_event_publisher import ClassEventPublisher


class ClassService:
    """Service layer for class business logic"""

    def __init__(
        self,
        repository: IClassRepository,
        cache: ICacheService,
        notifier: Optional[ClassEventPublisher] = None,
        cache_namespace: Optional[str] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.notifier = notifier
        self.cache_namespace = cache_namespace or config.cache_namespace
        self.cache_ttl_seconds = cache_ttl_seconds

    def _cache_key(self, class_id: int) -> str:
        return cache_key(self.cache_namespace, class_id)

    async def _cache_response(self, response: ClassResponse) -> None:
        await self.cache.set(
            self._cache_key(response.id),
            response.model_dump(mode="json"),
            self.cache_ttl_seconds,
        )

    async def _notify_failed(
        self,
        class_id: Optional[int],
        class_name: Optional[str],
        action: EventAction,
        error: Exception,
    ) -> None:
        if self.notifier is None:
            return
        await self.notifier.notify_operation_failed(class_id, class_name, action, str(error))

    async def create(self, request: ClassCreate) -> ClassResponse:
        """Create a class, cache it and announce it"""
        logger.info(f"Creating new class with name: {request.name}")

        try:
            saved = await self.repository.save(ClassDB(name=request.name))
            response = ClassResponse.from_entity(saved)
            await self._cache_response(response)
        except Exception as e:
            logger.error(f"Error creating class with name: {request.name}", error=e)
            await self._notify_failed(None, request.name, EventAction.CREATE, e)
            raise

        logger.info(
            f"Class created successfully with id: {saved.id}",
            metadata={"event": "create_class", "classId": saved.id, "namespace": self.cache_namespace},
        )

        if self.notifier is not None:
            await self.notifier.notify_created(saved.id, saved.name)

        return response

    async def get_by_id(self, class_id: int) -> ClassResponse:
        """
        Cache-aside read

        Raises:
            ClassNotFoundError: no class with this id
        """
        key = self._cache_key(class_id)

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                response = ClassResponse.model_validate(cached)
                logger.debug(f"Cache hit for class with id: {class_id}", metadata={"cacheKey": key})
                return response
            except ValidationError:
                logger.warning(f"Discarding unreadable cache entry {key}")

        entity = await self.repository.find_by_id(class_id)
        if entity is None:
            logger.warning(f"Class not found with id: {class_id}")
            raise ClassNotFoundError(class_id)

        response = ClassResponse.from_entity(entity)
        await self._cache_response(response)
        logger.debug(f"Class with id: {class_id} cached", metadata={"cacheKey": key})

        return response

    async def get_all(self) -> List[ClassResponse]:
        """List classes straight from the repository (lists are not cached)"""
        entities = await self.repository.find_all()
        logger.info(f"Successfully fetched {len(entities)} classes")
        return [ClassResponse.from_entity(entity) for entity in entities]

    async def update(self, class_id: int, request: ClassUpdate) -> ClassResponse:
        """
        Update a class and overwrite its cache entry

        Raises:
            ClassNotFoundError: no class with this id
        """
        logger.info(f"Updating class with id: {class_id}")

        try:
            existing = await self.repository.find_by_id(class_id)
            if existing is None:
                raise ClassNotFoundError(class_id)

            updated = await self.repository.save(existing.model_copy(update={"name": request.name}))
            response = ClassResponse.from_entity(updated)
            await self._cache_response(response)
        except Exception as e:
            logger.error(f"Error updating class with id: {class_id}", error=e)
            await self._notify_failed(class_id, request.name, EventAction.UPDATE, e)
            raise

        logger.info(
            f"Class updated successfully with id: {class_id}",
            metadata={"event": "update_class", "classId": class_id, "namespace": self.cache_namespace},
        )

        if self.notifier is not None:
            await self.notifier.notify_updated(updated.id, updated.name)

        return response

    async def delete(self, class_id: int) -> None:
        """
        Delete a class and evict its cache entry

        Raises:
            ClassNotFoundError: no class with this id
        """
        logger.info(f"Deleting class with id: {class_id}")

        try:
            existing = await self.repository.find_by_id(class_id)
            if existing is None:
                raise ClassNotFoundError(class_id)

            if not await self.repository.delete_by_id(class_id):
                raise ClassNotFoundError(class_id)

            await self.cache.delete(self._cache_key(class_id))
        except Exception as e:
            logger.error(f"Error deleting class with id: {class_id}", error=e)
            await self._notify_failed(class_id, None, EventAction.DELETE, e)
            raise

        logger.info(
            f"Class deleted successfully with id: {class_id}",
            metadata={"event": "delete_class", "classId": class_id, "namespace": self.cache_namespace},
        )

        if self.notifier is not None:
            await self.notifier.notify_deleted(class_id, existing.name)

    async def clear_cache(self) -> int:
        """Evict every entry in this service's cache namespace"""
        deleted = await self.cache.delete_pattern(f"{self.cache_namespace}:*")
        logger.info(f"Evicted {deleted} cached classes", metadata={"namespace": self.cache_namespace})
        return deleted
