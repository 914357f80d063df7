"""
Class CRUD controller shared by the messaging and the simple variants.

Every response uses the APIResponse envelope, errors included: a missing
class answers 404, any other failure 500.
"""

import time

from fastapi.responses import JSONResponse

from class_service.core.errors import ClassNotFoundError
from class_service.core.logger import logger
from class_service.models.school_class import APIResponse, ClassCreate, ClassUpdate
from class_service.services.class_service import ClassService


def _envelope(status_code: int, message: str, data=None) -> JSONResponse:
    body = APIResponse(status_code=status_code, message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


def _failure(prefix: str, operation: str, error: Exception) -> JSONResponse:
    status_code = 404 if isinstance(error, ClassNotFoundError) else 500
    if status_code == 500:
        logger.error(f"{prefix}Failed to {operation}", error=error)
    return _envelope(status_code, f"{prefix}Failed to {operation}: {error}")


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def list_classes(service: ClassService, prefix: str = "") -> JSONResponse:
    try:
        classes = await service.get_all()
    except Exception as e:
        return _failure(prefix, "fetch classes", e)
    return _envelope(
        200,
        f"{prefix}List of classes retrieved successfully",
        [c.model_dump() for c in classes],
    )


async def get_class(service: ClassService, class_id: int, prefix: str = "") -> JSONResponse:
    try:
        response = await service.get_by_id(class_id)
    except Exception as e:
        return _failure(prefix, "fetch class", e)
    return _envelope(200, f"{prefix}Class retrieved successfully", response.model_dump())


async def create_class(service: ClassService, request: ClassCreate, prefix: str = "") -> JSONResponse:
    started = time.perf_counter()
    try:
        response = await service.create(request)
    except Exception as e:
        return _failure(prefix, "create class", e)
    logger.performance(f"{prefix}create_class", _elapsed_ms(started))
    return _envelope(201, f"{prefix}Class created successfully", response.model_dump())


async def update_class(
    service: ClassService,
    class_id: int,
    request: ClassUpdate,
    prefix: str = "",
) -> JSONResponse:
    started = time.perf_counter()
    try:
        response = await service.update(class_id, request)
    except Exception as e:
        return _failure(prefix, "update class", e)
    logger.performance(f"{prefix}update_class", _elapsed_ms(started))
    return _envelope(200, f"{prefix}Class updated successfully", response.model_dump())


async def delete_class(service: ClassService, class_id: int, prefix: str = "") -> JSONResponse:
    started = time.perf_counter()
    try:
        await service.delete(class_id)
    except Exception as e:
        return _failure(prefix, "delete class", e)
    logger.performance(f"{prefix}delete_class", _elapsed_ms(started))
    return _envelope(200, f"{prefix}Class deleted successfully")
