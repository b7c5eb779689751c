"""
Health check API endpoints
"""

from fastapi import APIRouter

from pixelbatch.core.monitoring import health_checker, SystemHealth
from pixelbatch.presentation.api.v1.schemas.batch import ServiceStatus

router = APIRouter(tags=["health"])


@router.get("/health", response_model=SystemHealth)
async def health_check():
    """
    Host metrics and segmentation backend readiness
    """
    return health_checker.get_system_health()


@router.get("/", response_model=ServiceStatus)
async def root():
    return ServiceStatus(message="Pixelbatch API is running", status="healthy")
