from fastapi import APIRouter, Depends

import class_service.controllers.class_controller as class_controller
from class_service.dependencies.services import get_simple_class_service
from class_service.models.school_class import APIResponse, ClassCreate, ClassUpdate
from class_service.services.class_service import ClassService

# Same operations as the class router without any messaging, for comparison
router = APIRouter()

PREFIX = "SIMPLE - "


@router.get("", response_model=APIResponse)
async def list_classes(service: ClassService = Depends(get_simple_class_service)):
    return await class_controller.list_classes(service, PREFIX)


@router.get("/{class_id}", response_model=APIResponse, responses={404: {"model": APIResponse}})
async def get_class(class_id: int, service: ClassService = Depends(get_simple_class_service)):
    return await class_controller.get_class(service, class_id, PREFIX)


@router.post("", response_model=APIResponse, status_code=201)
async def create_class(request: ClassCreate, service: ClassService = Depends(get_simple_class_service)):
    return await class_controller.create_class(service, request, PREFIX)


@router.put("/{class_id}", response_model=APIResponse, responses={404: {"model": APIResponse}})
async def update_class(
    class_id: int,
    request: ClassUpdate,
    service: ClassService = Depends(get_simple_class_service),
):
    return await class_controller.update_class(service, class_id, request, PREFIX)


@router.delete("/{class_id}", response_model=APIResponse, responses={404: {"model": APIResponse}})
async def delete_class(class_id: int, service: ClassService = Depends(get_simple_class_service)):
    return await class_controller.delete_class(service, class_id, PREFIX)
