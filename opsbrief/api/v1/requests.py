# opsbrief/api/v1/requests.py
"""
Request helpers shared by the routers.

The body is parsed by hand instead of through a pydantic body parameter so
that a missing, blank or non-JSON ``question`` yields 400 with the standard
``{error, detail}`` envelope rather than FastAPI's 422.
"""

import json

from fastapi import HTTPException, Request, Response

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Correlation-ID",
}


async def read_question(request: Request) -> str:
    """Return the trimmed ``question`` from a JSON body or raise HTTP 400."""
    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except (UnicodeDecodeError, ValueError):
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    question = body.get("question") if isinstance(body, dict) else None
    if not isinstance(question, str) or not question.strip():
        raise HTTPException(status_code=400, detail="Missing 'question' in request body")
    return question.strip()


def preflight_response() -> Response:
    """200 for a bare OPTIONS call; real CORS preflights are answered by the middleware."""
    return Response(status_code=200, headers=PREFLIGHT_HEADERS)
