"""Shared test fixtures"""
import itertools
from typing import Any, Dict, List, Optional

import pytest

from class_service.core.errors import ClassNotFoundError, PersistenceError
from class_service.messaging.memory_broker import InMemoryBroker, InMemoryBrokerState
from class_service.messaging.topology import BrokerTopology
from class_service.models.school_class import ClassDB
from class_service.repositories.class_repository import IClassRepository
from class_service.services.cache_service import ICacheService
from class_service.services.class_event_publisher import ClassEventPublisher


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryClassRepository(IClassRepository):
    """Dict-backed repository with failure injection"""

    def __init__(self):
        self.rows: Dict[int, ClassDB] = {}
        self._ids = itertools.count(1)
        self.fail_on_save = False
        self.fail_on_delete = False

    async def save(self, entity: ClassDB) -> ClassDB:
        if self.fail_on_save:
            raise PersistenceError("Failed to save class: database unavailable")
        if entity.id is None:
            entity = entity.model_copy(update={"id": next(self._ids)})
        elif entity.id not in self.rows:
            raise ClassNotFoundError(entity.id)
        self.rows[entity.id] = entity
        return entity

    async def find_by_id(self, class_id: int) -> Optional[ClassDB]:
        return self.rows.get(class_id)

    async def delete_by_id(self, class_id: int) -> bool:
        if self.fail_on_delete:
            raise PersistenceError(f"Failed to delete class {class_id}: database unavailable")
        return self.rows.pop(class_id, None) is not None

    async def find_all(self) -> List[ClassDB]:
        return [self.rows[key] for key in sorted(self.rows)]

    async def ping(self) -> bool:
        return True


class DictCacheService(ICacheService):
    """Dict-backed cache that records reads"""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.reads: List[str] = []
        self.fail_on_set = False

    async def get(self, key: str) -> Optional[Any]:
        self.reads.append(key)
        return self.data.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        if self.fail_on_set:
            raise ConnectionError("cache unavailable")
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if key not in self.data:
            return False
        self.ttls[key] = ttl_seconds
        return True

    async def delete_pattern(self, pattern: str) -> int:
        prefix = pattern.rstrip("*")
        keys = [key for key in self.data if key.startswith(prefix)]
        for key in keys:
            del self.data[key]
        return len(keys)

    async def ping(self) -> bool:
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def topology():
    return BrokerTopology(
        exchange_name="class.exchange",
        queue_name="class.queue",
        routing_key="class.routing.key",
        dead_letter_exchange_name="class.exchange.dlq",
        dead_letter_queue_name="class.queue.dlq",
        message_ttl_ms=300000,
    )


@pytest.fixture
def broker_state(clock):
    return InMemoryBrokerState(clock=clock)


@pytest.fixture
def broker(broker_state, topology):
    """Connected in-memory broker with the class topology declared"""
    broker = InMemoryBroker(state=broker_state, poll_interval=0.01)
    broker.connect()
    topology.declare(broker)
    yield broker
    broker.disconnect()


@pytest.fixture
def publisher(broker, topology):
    return ClassEventPublisher(broker.share(), topology, confirm_timeout_seconds=2.0)


@pytest.fixture
def repository():
    return InMemoryClassRepository()


@pytest.fixture
def cache():
    return DictCacheService()
