from fastapi import APIRouter, Depends

import class_service.controllers.class_controller as class_controller
from class_service.dependencies.services import get_class_service
from class_service.models.school_class import APIResponse, ClassCreate, ClassUpdate
from class_service.services.class_service import ClassService

# Class CRUD; every mutation publishes a class event
router = APIRouter()


@router.get("", response_model=APIResponse)
async def list_classes(service: ClassService = Depends(get_class_service)):
    """List all classes (read straight from the repository)"""
    return await class_controller.list_classes(service)


@router.get(
    "/{class_id}",
    response_model=APIResponse,
    responses={404: {"model": APIResponse}},
)
async def get_class(class_id: int, service: ClassService = Depends(get_class_service)):
    """Get a class by id, served from the cache when possible"""
    return await class_controller.get_class(service, class_id)


@router.post("", response_model=APIResponse, status_code=201)
async def create_class(request: ClassCreate, service: ClassService = Depends(get_class_service)):
    """
    Create a class.

    The class is persisted, cached, then announced with a CREATE event.
    """
    return await class_controller.create_class(service, request)


@router.put(
    "/{class_id}",
    response_model=APIResponse,
    responses={404: {"model": APIResponse}},
)
async def update_class(
    class_id: int,
    request: ClassUpdate,
    service: ClassService = Depends(get_class_service),
):
    """Rename a class and publish an UPDATE event"""
    return await class_controller.update_class(service, class_id, request)


@router.delete(
    "/{class_id}",
    response_model=APIResponse,
    responses={404: {"model": APIResponse}},
)
async def delete_class(class_id: int, service: ClassService = Depends(get_class_service)):
    """Delete a class, evict it from the cache and publish a DELETE event"""
    return await class_controller.delete_class(service, class_id)
