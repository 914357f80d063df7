"""
Class Event Publisher
Publishes class lifecycle events to the class exchange with publisher confirms.

Publishing never raises into the caller: the mutation has already been
persisted by the time an event goes out, so a broker problem is logged and
reported as a PublishOutcome instead. There is no automatic retry.
"""

import asyncio
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional

from class_service.core.config import config
from class_service.core.errors import (
    PublishNackError,
    PublishTimeoutError,
    TransientDeliveryError,
    UnroutableMessageError,
)
from class_service.core.logger import logger
from class_service.messaging.i_message_broker import IMessageBroker
from class_service.messaging.topology import BrokerTopology
from class_service.models.class_event import ClassEvent, EventAction
from class_service.utils.correlation_id import get_correlation_id


class PublishOutcome(str, Enum):
    CONFIRMED = "CONFIRMED"
    UNROUTABLE = "UNROUTABLE"
    NACKED = "NACKED"
    CONFIRM_UNKNOWN = "CONFIRM_UNKNOWN"
    FAILED = "FAILED"

    @property
    def delivered(self) -> bool:
        return self is PublishOutcome.CONFIRMED


class ClassEventPublisher:
    """Publisher for class lifecycle events"""

    def __init__(
        self,
        broker: IMessageBroker,
        topology: BrokerTopology,
        confirm_timeout_seconds: Optional[float] = None,
    ):
        self.broker = broker
        self.topology = topology
        self.confirm_timeout_seconds = (
            confirm_timeout_seconds
            if confirm_timeout_seconds is not None
            else config.publish_confirm_timeout_seconds
        )
        # pika channels are not thread safe
        self._lock = threading.Lock()

    def start(self) -> None:
        """Connect and declare the topology"""
        with self._lock:
            self._ensure_connected()

    def _ensure_connected(self) -> None:
        if not self.broker.is_healthy():
            self.broker.connect()
            self.topology.declare(self.broker)

    def _publish_blocking(
        self,
        body: bytes,
        message_id: str,
        correlation_id: Optional[str],
        on_locked: Callable[[], None],
        routing_key: Optional[str] = None,
    ) -> None:
        with self._lock:
            on_locked()
            self._ensure_connected()
            self.broker.publish(
                exchange=self.topology.exchange_name,
                routing_key=routing_key or self.topology.routing_key,
                body=body,
                message_id=message_id,
                correlation_id=correlation_id,
            )

    async def publish(self, event: ClassEvent) -> PublishOutcome:
        """
        Serialize and publish a class event, waiting for the broker's confirm

        Args:
            event: The event to publish

        Returns:
            PublishOutcome describing what the broker did with the message
        """
        try:
            body = event.to_wire()
        except ValueError as e:
            logger.error(
                "Class event could not be serialized",
                error=e,
                metadata={"classId": event.entity_id, "action": event.action_name},
            )
            return PublishOutcome.FAILED
        return await self._publish(body, event)

    async def publish_raw(self, body: bytes, routing_key: Optional[str] = None) -> PublishOutcome:
        """Publish an arbitrary body (used to exercise the dead-letter path)"""
        return await self._publish(body, None, routing_key)

    async def _publish(
        self,
        body: bytes,
        event: Optional[ClassEvent],
        routing_key: Optional[str] = None,
    ) -> PublishOutcome:
        message_id = str(uuid.uuid4())
        correlation_id = get_correlation_id()
        metadata: Dict[str, Any] = {
            "messageId": message_id,
            "exchange": self.topology.exchange_name,
            "routingKey": routing_key or self.topology.routing_key,
        }
        if event is not None:
            metadata.update({
                "classId": event.entity_id,
                "action": event.action_name,
                "status": event.status.value,
            })

        loop = asyncio.get_running_loop()
        locked = loop.create_future()

        def on_locked() -> None:
            loop.call_soon_threadsafe(_resolve, locked)

        task = asyncio.ensure_future(
            asyncio.to_thread(self._publish_blocking, body, message_id, correlation_id, on_locked, routing_key)
        )

        try:
            # Queueing behind other publishes does not count against the confirm timeout
            await asyncio.wait({locked, task}, return_when=asyncio.FIRST_COMPLETED)
            await asyncio.wait_for(asyncio.shield(task), timeout=self.confirm_timeout_seconds)
        except UnroutableMessageError as e:
            logger.warning(
                f"Class event was not routed to any queue: {e}",
                correlation_id=correlation_id,
                metadata=metadata,
            )
            return PublishOutcome.UNROUTABLE
        except PublishNackError as e:
            logger.error(
                "Broker rejected class event",
                correlation_id=correlation_id,
                error=e,
                metadata=metadata,
            )
            return PublishOutcome.NACKED
        except asyncio.TimeoutError:
            # The blocking publish cannot be cancelled; it may still be confirmed
            logger.warning(
                "Publish confirmation did not arrive in time, delivery unknown",
                correlation_id=correlation_id,
                error=PublishTimeoutError(f"No confirm after {self.confirm_timeout_seconds}s"),
                metadata=metadata,
            )
            task.add_done_callback(lambda done: _log_late_result(done, correlation_id, metadata))
            return PublishOutcome.CONFIRM_UNKNOWN
        except TransientDeliveryError as e:
            logger.error(
                "Failed to deliver class event",
                correlation_id=correlation_id,
                error=e,
                metadata=metadata,
            )
            return PublishOutcome.FAILED
        except Exception as e:
            # Publishing failures must not break the mutation that triggered them
            logger.error(
                f"Error publishing class event: {e}",
                correlation_id=correlation_id,
                error=e,
                metadata=metadata,
            )
            return PublishOutcome.FAILED

        logger.info("Published class event", correlation_id=correlation_id, metadata=metadata)
        return PublishOutcome.CONFIRMED

    async def notify_created(self, class_id: int, class_name: str) -> PublishOutcome:
        return await self.publish(
            ClassEvent.success(class_id, class_name, EventAction.CREATE, "Class created successfully")
        )

    async def notify_updated(self, class_id: int, class_name: str) -> PublishOutcome:
        return await self.publish(
            ClassEvent.success(class_id, class_name, EventAction.UPDATE, "Class updated successfully")
        )

    async def notify_deleted(self, class_id: int, class_name: str) -> PublishOutcome:
        return await self.publish(
            ClassEvent.success(class_id, class_name, EventAction.DELETE, "Class deleted successfully")
        )

    async def notify_operation_failed(
        self,
        class_id: Optional[int],
        class_name: Optional[str],
        action: EventAction,
        error_message: str,
    ) -> PublishOutcome:
        """Best-effort audit signal for a failed mutation"""
        return await self.publish(ClassEvent.failed(class_id, class_name, action, error_message))

    def _stats_blocking(self) -> Dict[str, Any]:
        with self._lock:
            self._ensure_connected()
            return {
                "main": self.broker.get_stats(self.topology.queue_name),
                "deadLetter": self.broker.get_stats(self.topology.dead_letter_queue_name),
            }

    async def get_queue_stats(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._stats_blocking)

    def is_healthy(self) -> bool:
        return self.broker.is_healthy()

    def close(self) -> None:
        with self._lock:
            self.broker.disconnect()


def _resolve(future: "asyncio.Future[None]") -> None:
    if not future.done():
        future.set_result(None)


def _log_late_result(task: "asyncio.Future[None]", correlation_id: Optional[str], metadata: Dict[str, Any]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is None:
        logger.info("Class event confirmed after the timeout", correlation_id=correlation_id, metadata=metadata)
    else:
        logger.error(
            "Class event was not delivered after the timeout",
            correlation_id=correlation_id,
            error=error,
            metadata=metadata,
        )
