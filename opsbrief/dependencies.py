# opsbrief/dependencies.py
"""
FastAPI dependency providers.

Routers never build services themselves; they ask for them here so tests can
swap in a fake through ``app.dependency_overrides``.

Usage:
    from fastapi import Depends
    from opsbrief.dependencies import get_briefing_service

    @router.post("/txi-dashboard")
    async def dashboard(service: BriefingService = Depends(get_briefing_service)):
        ...
"""

import logging
from typing import Optional

from .config import settings
from .services.briefing_service import BriefingService

logger = logging.getLogger("opsbrief.dependencies")

_briefing_service: Optional[BriefingService] = None


def get_briefing_service() -> BriefingService:
    """Process-wide BriefingService built lazily from the global settings."""
    global _briefing_service
    if _briefing_service is None:
        _briefing_service = BriefingService.from_settings(settings)
        logger.info("Briefing service initialized (gemini=%s)", "on" if _briefing_service.llm else "off")
    return _briefing_service


async def shutdown_briefing_service() -> None:
    global _briefing_service
    if _briefing_service is not None:
        await _briefing_service.close()
        _briefing_service = None
