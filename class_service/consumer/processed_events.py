"""
Processed event tracking for idempotent consumption.

Delivery is at-least-once: a worker that crashes after handling an event but
before acknowledging it gets the event redelivered. Handlers run only for
events whose key could be marked here first.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from redis import Redis

from class_service.core.config import config
from class_service.core.logger import logger
from class_service.models.class_event import TIMESTAMP_FORMAT, ClassEvent


def event_key(event: ClassEvent) -> str:
    """
    Content key for events delivered without a message id

    Class id, action, status and the publish timestamp (whole seconds), so two
    such events for one class within the same second collapse into one.
    """
    return ":".join([
        str(event.entity_id),
        event.action_name,
        event.status.value,
        event.timestamp.strftime(TIMESTAMP_FORMAT),
    ])


class ProcessedEventStore(ABC):
    """Tracks which events have already been handled"""

    @abstractmethod
    def is_processed(self, key: str) -> bool:
        pass

    @abstractmethod
    def mark_processed(self, key: str) -> bool:
        """
        Atomically mark an event as processed

        Returns:
            True if marked now, False if it was already processed
        """

    @abstractmethod
    def unmark_processed(self, key: str) -> None:
        """Forget a key so a redelivery is handled again"""


class InMemoryProcessedEventStore(ProcessedEventStore):
    """Thread-safe in-process store with expiry"""

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.processed_event_ttl_seconds
        self.clock = clock
        self._expires_at: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        expired = [key for key, expires_at in self._expires_at.items() if expires_at <= now]
        for key in expired:
            del self._expires_at[key]

    def is_processed(self, key: str) -> bool:
        with self._lock:
            self._purge(self.clock())
            return key in self._expires_at

    def mark_processed(self, key: str) -> bool:
        with self._lock:
            now = self.clock()
            self._purge(now)
            if key in self._expires_at:
                return False
            self._expires_at[key] = now + self.ttl_seconds
            return True

    def unmark_processed(self, key: str) -> None:
        with self._lock:
            self._expires_at.pop(key, None)


class RedisProcessedEventStore(ProcessedEventStore):
    """Redis store shared by every worker and process (SET NX with TTL)"""

    def __init__(self, client: Redis, ttl_seconds: Optional[int] = None, prefix: str = "class:processed:"):
        self.client = client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.processed_event_ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def is_processed(self, key: str) -> bool:
        return bool(self.client.exists(self._key(key)))

    def mark_processed(self, key: str) -> bool:
        return bool(self.client.set(self._key(key), "1", nx=True, ex=self.ttl_seconds))

    def unmark_processed(self, key: str) -> None:
        self.client.delete(self._key(key))


def create_processed_event_store(store_type: Optional[str] = None) -> ProcessedEventStore:
    store_type = (store_type or config.processed_event_store).lower()
    logger.debug(f"Creating processed event store: {store_type}")

    if store_type == "redis":
        client = Redis.from_url(config.redis_url, decode_responses=True, encoding="utf-8")
        return RedisProcessedEventStore(client)
    elif store_type == "memory":
        return InMemoryProcessedEventStore()
    else:
        raise ValueError(
            f"Unsupported processed event store: {store_type}. "
            f"Supported types: redis, memory"
        )
