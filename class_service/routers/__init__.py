# Router modules for the class service
from .class_router import router as class_router
from .class_simple_router import router as class_simple_router
from .dlq_test_router import router as dlq_test_router

__all__ = [
    "class_router",
    "class_simple_router",
    "dlq_test_router",
]
