"""
Class lifecycle handlers
Each handler is safe to run again for the same event.
"""
from class_service.core.logger import logger
from class_service.models.class_event import ClassEvent


def handle_class_created(event: ClassEvent, correlation_id: str = None) -> None:
    """Handle a CREATE event"""
    logger.info(
        f"Class '{event.entity_name}' with ID {event.entity_id} has been created",
        correlation_id=correlation_id,
        metadata={"classId": event.entity_id, "status": event.status.value},
    )


def handle_class_updated(event: ClassEvent, correlation_id: str = None) -> None:
    """Handle an UPDATE event"""
    logger.info(
        f"Class '{event.entity_name}' with ID {event.entity_id} has been updated",
        correlation_id=correlation_id,
        metadata={"classId": event.entity_id, "status": event.status.value},
    )


def handle_class_deleted(event: ClassEvent, correlation_id: str = None) -> None:
    """Handle a DELETE event"""
    logger.info(
        f"Class '{event.entity_name}' with ID {event.entity_id} has been deleted",
        correlation_id=correlation_id,
        metadata={"classId": event.entity_id, "status": event.status.value},
    )
