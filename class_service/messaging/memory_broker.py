"""
In-process broker with RabbitMQ routing semantics.

Supports what the class event topology relies on:
- direct exchanges and exact routing-key bindings (plus the default exchange)
- mandatory publishing: a message matching no binding raises UnroutableMessageError
- x-dead-letter-exchange / x-dead-letter-routing-key on reject without requeue
- x-message-ttl expiry, dead-lettered with reason "expired"
- x-death headers recording queue, reason and count
- one delivery handed to exactly one consumer at a time

Several InMemoryBroker handles can share one InMemoryBrokerState, the way
several AMQP connections share one RabbitMQ node. Used for tests and for
MESSAGE_BROKER_TYPE=memory.
"""

import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from class_service.core.errors import BrokerConnectionError, UnroutableMessageError
from class_service.core.logger import logger
from .i_message_broker import Delivery, IMessageBroker, MessageCallback


@dataclass
class _Record:
    body: bytes
    exchange: str
    routing_key: str
    enqueued_at: float
    message_id: Optional[str] = None
    correlation_id: Optional[str] = None
    headers: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _Queue:
    name: str
    durable: bool
    arguments: Dict[str, Any]
    ready: Deque[_Record] = field(default_factory=deque)
    unacked: Dict[int, _Record] = field(default_factory=dict)
    consumers: int = 0

    @property
    def ttl_ms(self) -> Optional[int]:
        return self.arguments.get("x-message-ttl")


@dataclass
class _Exchange:
    name: str
    exchange_type: str
    durable: bool
    auto_delete: bool
    bindings: List[Tuple[str, str]] = field(default_factory=list)  # (routing_key, queue)


class InMemoryBrokerState:
    """Exchanges, queues and messages shared by every handle"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.condition = threading.Condition()
        self.exchanges: Dict[str, _Exchange] = {}
        self.queues: Dict[str, _Queue] = {}
        self._tags = itertools.count(1)

    def next_tag(self) -> int:
        return next(self._tags)


class InMemoryBroker(IMessageBroker):
    """In-process implementation of IMessageBroker"""

    def __init__(
        self,
        state: Optional[InMemoryBrokerState] = None,
        poll_interval: float = 0.05,
    ):
        self.state = state or InMemoryBrokerState()
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._is_connected = False

    def share(self) -> "InMemoryBroker":
        """Open another handle on the same broker state"""
        return InMemoryBroker(state=self.state, poll_interval=self.poll_interval)

    def connect(self) -> None:
        self._stop.clear()
        self._is_connected = True
        logger.debug("In-memory broker connected")

    def _require_connected(self) -> None:
        if not self._is_connected:
            raise BrokerConnectionError("In-memory broker is not connected")

    def declare_exchange(
        self,
        name: str,
        exchange_type: str = "direct",
        durable: bool = True,
        auto_delete: bool = False,
    ) -> None:
        self._require_connected()
        if exchange_type != "direct":
            raise ValueError(f"Unsupported exchange type for in-memory broker: {exchange_type}")
        with self.state.condition:
            if name not in self.state.exchanges:
                self.state.exchanges[name] = _Exchange(name, exchange_type, durable, auto_delete)

    def declare_queue(
        self,
        name: str,
        durable: bool = True,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._require_connected()
        with self.state.condition:
            existing = self.state.queues.get(name)
            if existing is None:
                self.state.queues[name] = _Queue(name, durable, dict(arguments or {}))
            elif existing.arguments != dict(arguments or {}):
                raise BrokerConnectionError(
                    f"PRECONDITION_FAILED - inequivalent arguments for queue '{name}'"
                )

    def bind_queue(self, queue_name: str, exchange_name: str, routing_key: str) -> None:
        self._require_connected()
        with self.state.condition:
            exchange = self.state.exchanges.get(exchange_name)
            if exchange is None or queue_name not in self.state.queues:
                raise BrokerConnectionError(f"NOT_FOUND - cannot bind {queue_name} to {exchange_name}")
            if (routing_key, queue_name) not in exchange.bindings:
                exchange.bindings.append((routing_key, queue_name))

    def _route(self, exchange_name: str, routing_key: str) -> Optional[List[_Queue]]:
        """Queues matching the routing key, or None if the exchange does not exist"""
        if exchange_name == "":
            queue = self.state.queues.get(routing_key)
            return [queue] if queue else []
        exchange = self.state.exchanges.get(exchange_name)
        if exchange is None:
            return None
        return [
            self.state.queues[queue_name]
            for key, queue_name in exchange.bindings
            if key == routing_key and queue_name in self.state.queues
        ]

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._require_connected()
        with self.state.condition:
            queues = self._route(exchange, routing_key)
            if queues is None:
                raise BrokerConnectionError(f"NOT_FOUND - no exchange '{exchange}'")
            if not queues:
                raise UnroutableMessageError(
                    f"Message returned by broker: no queue bound to {exchange} with key {routing_key}"
                )
            now = self.state.clock()
            for queue in queues:
                queue.ready.append(_Record(
                    body=body,
                    exchange=exchange,
                    routing_key=routing_key,
                    enqueued_at=now,
                    message_id=message_id,
                    correlation_id=correlation_id,
                    headers=dict(headers or {}),
                ))
            self.state.condition.notify_all()

    def _dead_letter(self, queue: _Queue, record: _Record, reason: str) -> None:
        """Re-publish a rejected or expired record to the queue's dead-letter exchange"""
        dlx = queue.arguments.get("x-dead-letter-exchange")
        if dlx is None:
            logger.debug(f"Message dropped from {queue.name} ({reason}); no dead-letter exchange")
            return

        dl_routing_key = queue.arguments.get("x-dead-letter-routing-key", record.routing_key)

        deaths = [dict(d) for d in record.headers.get("x-death") or []]
        for death in deaths:
            if death.get("queue") == queue.name and death.get("reason") == reason:
                death["count"] = int(death.get("count", 0)) + 1
                deaths.remove(death)
                deaths.insert(0, death)
                break
        else:
            deaths.insert(0, {
                "count": 1,
                "reason": reason,
                "queue": queue.name,
                "exchange": record.exchange,
                "routing-keys": [record.routing_key],
                "time": datetime.now(UTC).isoformat(),
            })

        headers = dict(record.headers)
        headers["x-death"] = deaths

        targets = self._route(dlx, dl_routing_key) or []
        if not targets:
            logger.warning(f"Dead-lettered message from {queue.name} matched no queue on {dlx}")
        now = self.state.clock()
        for target in targets:
            target.ready.append(_Record(
                body=record.body,
                exchange=dlx,
                routing_key=dl_routing_key,
                enqueued_at=now,
                message_id=record.message_id,
                correlation_id=record.correlation_id,
                headers=headers,
            ))
        self.state.condition.notify_all()

    def _expire(self, queue: _Queue) -> None:
        """Dead-letter messages at the head of the queue whose TTL has passed"""
        ttl_ms = queue.ttl_ms
        if ttl_ms is None:
            return
        now = self.state.clock()
        while queue.ready and (now - queue.ready[0].enqueued_at) * 1000 >= ttl_ms:
            self._dead_letter(queue, queue.ready.popleft(), "expired")

    def expire_messages(self) -> None:
        """Apply TTL expiry to every queue now"""
        with self.state.condition:
            for queue in list(self.state.queues.values()):
                self._expire(queue)

    def _to_delivery(self, tag: int, record: _Record) -> Delivery:
        return Delivery(
            body=record.body,
            delivery_tag=tag,
            exchange=record.exchange,
            routing_key=record.routing_key,
            message_id=record.message_id,
            correlation_id=record.correlation_id,
            headers=dict(record.headers),
        )

    def _settle(self, queue: _Queue, tag: int, accepted: bool) -> None:
        with self.state.condition:
            record = queue.unacked.pop(tag, None)
            if record is not None and not accepted:
                self._dead_letter(queue, record, "rejected")

    def consume(self, queue_name: str, callback: MessageCallback) -> None:
        self._require_connected()

        with self.state.condition:
            queue = self.state.queues.get(queue_name)
            if queue is None:
                raise BrokerConnectionError(f"NOT_FOUND - no queue '{queue_name}'")
            queue.consumers += 1

        try:
            while not self._stop.is_set():
                with self.state.condition:
                    self._expire(queue)
                    if not queue.ready:
                        self.state.condition.wait(timeout=self.poll_interval)
                        continue
                    record = queue.ready.popleft()
                    tag = self.state.next_tag()
                    queue.unacked[tag] = record

                try:
                    accepted = callback(self._to_delivery(tag, record))
                except Exception as e:
                    logger.error(f"❌ Error processing message: {e}", error=e)
                    accepted = False

                self._settle(queue, tag, bool(accepted))
        finally:
            with self.state.condition:
                queue.consumers -= 1

    def stop_consuming(self) -> None:
        self._stop.set()
        with self.state.condition:
            self.state.condition.notify_all()

    def get(self, queue_name: str) -> Optional[Delivery]:
        self._require_connected()
        with self.state.condition:
            queue = self.state.queues.get(queue_name)
            if queue is None:
                raise BrokerConnectionError(f"NOT_FOUND - no queue '{queue_name}'")
            self._expire(queue)
            if not queue.ready:
                return None
            return self._to_delivery(self.state.next_tag(), queue.ready.popleft())

    def get_stats(self, queue_name: str) -> Dict[str, Any]:
        with self.state.condition:
            queue = self.state.queues.get(queue_name)
            if queue is None:
                return {
                    "queue": queue_name,
                    "error": f"NOT_FOUND - no queue '{queue_name}'",
                    "connected": self._is_connected,
                }
            self._expire(queue)
            return {
                "queue": queue_name,
                "message_count": len(queue.ready),
                "unacked_count": len(queue.unacked),
                "consumer_count": queue.consumers,
                "connected": self._is_connected,
            }

    def is_healthy(self) -> bool:
        return self._is_connected

    def disconnect(self) -> None:
        self.stop_consuming()
        self._is_connected = False
