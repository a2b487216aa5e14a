"""SharePoint document assistant and seeded signal endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from ....dependencies import get_briefing_service
from ....models import DocumentAnswer, SignalsResponse
from ....services.briefing_service import BriefingService
from ..requests import preflight_response, read_question

router = APIRouter()


@router.post("/chat-sp", response_model=DocumentAnswer, response_model_by_alias=True, tags=["SharePoint"])
async def chat_sharepoint(
    request: Request,
    service: BriefingService = Depends(get_briefing_service),
) -> DocumentAnswer:
    """Summarise the SharePoint documents that best match the question."""
    question = await read_question(request)
    return await service.ask_documents(question)


@router.post(
    "/sharepoint-signals",
    response_model=SignalsResponse,
    response_model_by_alias=True,
    tags=["SharePoint"],
)
async def sharepoint_signals(service: BriefingService = Depends(get_briefing_service)) -> SignalsResponse:
    """Extracted text of the seeded SharePoint files."""
    return await service.read_signals()


@router.options("/chat-sp", include_in_schema=False)
@router.options("/sharepoint-signals", include_in_schema=False)
async def sharepoint_options() -> Response:
    return preflight_response()
