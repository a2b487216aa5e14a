# opsbrief/api/v1/routers/dashboard.py
"""Leadership dashboard endpoint: one question in, one executive brief out."""

from fastapi import APIRouter, Depends, Request, Response

from ....dependencies import get_briefing_service
from ....models import BriefResponse
from ....services.briefing_service import BriefingService
from ..requests import preflight_response, read_question

router = APIRouter()


@router.post(
    "/txi-dashboard",
    response_model=BriefResponse,
    response_model_by_alias=True,
    tags=["Dashboard"],
)
async def txi_dashboard(
    request: Request,
    service: BriefingService = Depends(get_briefing_service),
) -> BriefResponse:
    """
    Answer a leadership question from ServiceNow, Salesforce and SharePoint.

    Always 200 once the question is valid: unavailable sources show up as
    ``ok: false`` entries and visibility gaps in ``combinedAnswer``.
    """
    question = await read_question(request)
    return await service.answer(question)


@router.options("/txi-dashboard", include_in_schema=False)
async def txi_dashboard_options() -> Response:
    return preflight_response()
