"""CRM assistant endpoint backed by the Salesforce adapter."""

from fastapi import APIRouter, Depends, Request, Response

from ....dependencies import get_briefing_service
from ....models import CrmAnswer
from ....services.briefing_service import BriefingService
from ..requests import preflight_response, read_question

router = APIRouter()


@router.post("/chat", response_model=CrmAnswer, response_model_by_alias=True, tags=["Salesforce"])
async def chat_salesforce(
    request: Request,
    service: BriefingService = Depends(get_briefing_service),
) -> CrmAnswer:
    question = await read_question(request)
    return await service.ask_crm(question)


@router.options("/chat", include_in_schema=False)
async def chat_options() -> Response:
    return preflight_response()
