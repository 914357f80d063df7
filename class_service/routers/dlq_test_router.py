from fastapi import APIRouter, Depends, Query

import class_service.controllers.dlq_test_controller as dlq_test_controller
from class_service.dependencies.services import get_class_event_publisher
from class_service.services.class_event_publisher import ClassEventPublisher

# Diagnostic endpoints that send messages the consumer will dead-letter
router = APIRouter()


@router.post("/send-poison-message")
async def send_poison_message(publisher: ClassEventPublisher = Depends(get_class_event_publisher)):
    """Publish an event carrying the POISON_MESSAGE directive"""
    return await dlq_test_controller.send_poison_message(publisher)


@router.post("/send-malformed-message")
async def send_malformed_message(publisher: ClassEventPublisher = Depends(get_class_event_publisher)):
    """Publish a JSON body that does not decode into a class event"""
    return await dlq_test_controller.send_malformed_message(publisher)


@router.post("/send-exception-trigger")
async def send_exception_trigger(publisher: ClassEventPublisher = Depends(get_class_event_publisher)):
    """Publish an event carrying the RUNTIME_EXCEPTION directive"""
    return await dlq_test_controller.send_exception_trigger(publisher)


@router.post("/batch-failure-test")
async def batch_failure_test(
    count: int = Query(5, ge=1, le=100, description="Number of failing messages to send"),
    publisher: ClassEventPublisher = Depends(get_class_event_publisher),
):
    """Publish count events carrying the BATCH_FAILURE directive"""
    return await dlq_test_controller.batch_failure_test(publisher, count)
