"""
Handler Registry - Maps class event actions to their handler functions
"""
from typing import Callable, Dict

from class_service.consumer.handlers.class_handlers import (
    handle_class_created,
    handle_class_deleted,
    handle_class_updated,
)
from class_service.models.class_event import ClassEvent, EventAction

ClassEventHandler = Callable[[ClassEvent, str], None]

# Registry mapping actions to handler functions
HANDLERS: Dict[EventAction, ClassEventHandler] = {
    EventAction.CREATE: handle_class_created,
    EventAction.UPDATE: handle_class_updated,
    EventAction.DELETE: handle_class_deleted,
}

