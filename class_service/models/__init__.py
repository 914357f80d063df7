from .class_event import ClassEvent, EventAction, EventStatus, TestDirective
from .school_class import APIResponse, ClassCreate, ClassDB, ClassResponse, ClassUpdate

__all__ = [
    "ClassEvent",
    "EventAction",
    "EventStatus",
    "TestDirective",
    "APIResponse",
    "ClassCreate",
    "ClassDB",
    "ClassResponse",
    "ClassUpdate",
]
