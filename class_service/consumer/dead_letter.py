"""
Dead-letter queue sink.
Every message that reaches class.queue.dlq is logged with its x-death
history and acknowledged; nothing is re-published.
"""

from class_service.core.errors import EventValidationError
from class_service.core.logger import logger
from class_service.messaging.i_message_broker import Delivery
from class_service.models.class_event import ClassEvent


def handle_dead_letter(delivery: Delivery) -> bool:
    metadata = {
        "reason": delivery.death_reason,
        "deathCount": delivery.death_count,
        "messageId": delivery.message_id,
    }
    if delivery.deaths:
        metadata["originalQueue"] = delivery.deaths[0].get("queue")

    try:
        event = ClassEvent.from_wire(delivery.body)
        metadata.update({
            "classId": event.entity_id,
            "className": event.entity_name,
            "action": event.action_name,
            "status": event.status.value,
        })
    except EventValidationError:
        metadata["bodyPreview"] = delivery.body[:200].decode("utf-8", errors="replace")

    logger.error(
        "Received message from Dead Letter Queue",
        correlation_id=delivery.correlation_id,
        metadata=metadata,
    )
    return True
