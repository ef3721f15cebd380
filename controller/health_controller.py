# controller/health_controller.py
from fastapi import APIRouter, Depends, status
from controller.controller_dependencies import get_health_service
from model.api import HealthResponse
from service.health_service import HealthService
from util.constants import InternalURIs

health_router = APIRouter()


@health_router.get(
    InternalURIs.HEALTH,
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
@health_router.get(
    InternalURIs.ROOT,
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    include_in_schema=False,
)
async def health(service: HealthService = Depends(get_health_service)) -> HealthResponse:
    return service.report()
