# opsbrief/api/v1/routers/system.py
from fastapi import APIRouter

from .... import __title__
from ....config import settings
from ....models import HealthResponse

router = APIRouter()


@router.get("/system/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """Liveness only; external sources are not contacted."""
    return HealthResponse(status="ok", service=__title__, version=settings.api_version)
