from fastapi import APIRouter

# Aggregate all v1 routers here
from .routers import dashboard, salesforce, sharepoint, system

api_router = APIRouter()
api_router.include_router(system.router)
api_router.include_router(dashboard.router)
api_router.include_router(sharepoint.router)
api_router.include_router(salesforce.router)

__all__ = ["api_router"]
