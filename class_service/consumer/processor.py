"""
Class event processor.

Decides, for each delivery from the class queue, whether it is acknowledged
or rejected. A rejected message is never requeued; the broker moves it to
the dead-letter queue.

    decode ─┬─ malformed ──────────────────────────────► REJECT
            └─ classify ─┬─ poison ────────────────────► REJECT
                         └─ action ─┬─ unknown ────────► ACCEPT (warn)
                                    └─ mark processed ─┬─ duplicate ► ACCEPT
                                                       └─ handler ─┬─ ok ──► ACCEPT
                                                                   └─ error► REJECT
"""

from enum import Enum
from typing import Dict, Optional

from class_service.consumer.classifier import classify
from class_service.consumer.handlers.handler_registry import HANDLERS, ClassEventHandler
from class_service.consumer.processed_events import (
    InMemoryProcessedEventStore,
    ProcessedEventStore,
    event_key,
)
from class_service.core.config import config
from class_service.core.errors import EventValidationError, PoisonMessageError
from class_service.core.logger import logger
from class_service.messaging.i_message_broker import Delivery
from class_service.models.class_event import ClassEvent, EventAction
from class_service.utils.correlation_id import create_correlation_id, set_correlation_id


class Disposition(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class ClassEventProcessor:
    """Turns deliveries into ACCEPT / REJECT decisions"""

    def __init__(
        self,
        handlers: Optional[Dict[EventAction, ClassEventHandler]] = None,
        processed_events: Optional[ProcessedEventStore] = None,
        accept_legacy_markers: Optional[bool] = None,
    ):
        self.handlers = handlers if handlers is not None else dict(HANDLERS)
        self.processed_events = processed_events or InMemoryProcessedEventStore()
        self.accept_legacy_markers = (
            accept_legacy_markers if accept_legacy_markers is not None else config.accept_legacy_markers
        )

    def process(self, delivery: Delivery) -> bool:
        """Broker callback: True acknowledges, False rejects without requeue"""
        correlation_id = delivery.correlation_id or create_correlation_id()
        set_correlation_id(correlation_id)
        return self.handle(delivery.body, correlation_id, delivery.message_id) is Disposition.ACCEPT

    def handle(
        self,
        body: bytes,
        correlation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> Disposition:
        """
        Decide the fate of one message body

        The message id set by the publisher survives redelivery and is the
        idempotency key; events without one fall back to their content key.
        """
        try:
            event = ClassEvent.from_wire(body)
        except EventValidationError as e:
            logger.error(
                f"Rejecting malformed class message: {e}",
                correlation_id=correlation_id,
                metadata={"bodyPreview": body[:200].decode("utf-8", errors="replace")},
            )
            return Disposition.REJECT

        metadata = {
            "classId": event.entity_id,
            "className": event.entity_name,
            "action": event.action_name,
            "status": event.status.value,
        }
        logger.info("Received class message", correlation_id=correlation_id, metadata=metadata)

        try:
            marker = classify(event, self.accept_legacy_markers)
            if marker is not None:
                raise PoisonMessageError(str(marker), event.entity_id)

            if not event.is_known_action:
                logger.warning(
                    f"Unknown action: {event.action_name}",
                    correlation_id=correlation_id,
                    metadata=metadata,
                )
                return Disposition.ACCEPT

            handler = self.handlers.get(event.action)
            if handler is None:
                logger.warning(
                    f"No handler registered for action: {event.action_name}",
                    correlation_id=correlation_id,
                    metadata=metadata,
                )
                return Disposition.ACCEPT

            key = message_id or event_key(event)
            if not self.processed_events.mark_processed(key):
                logger.info(
                    "Skipping already processed class message",
                    correlation_id=correlation_id,
                    metadata={**metadata, "eventKey": key},
                )
                return Disposition.ACCEPT

            try:
                handler(event, correlation_id)
            except Exception:
                self.processed_events.unmark_processed(key)
                raise

        except PoisonMessageError as e:
            logger.error(
                f"Rejecting poison class message: {e}",
                correlation_id=correlation_id,
                metadata={**metadata, "marker": e.marker},
            )
            return Disposition.REJECT
        except Exception as e:
            logger.error(
                f"Failed to process class message for class ID: {event.entity_id}",
                correlation_id=correlation_id,
                error=e,
                metadata=metadata,
            )
            return Disposition.REJECT

        logger.info(
            f"Successfully processed class message for class ID: {event.entity_id}",
            correlation_id=correlation_id,
            metadata=metadata,
        )
        return Disposition.ACCEPT
