# opsbrief/services/polish.py
"""
Optional LLM polish of the deterministic brief.

The rewritten text is only shown if it passes the template guard: every
required section header present and a minimum length. Anything else (no API
key, network error, rate limit after retries, empty or malformed reply)
returns the deterministic brief unchanged, with the reason in
``GeminiStatus.error``.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..connectors.gemini import GeminiClient
from ..errors import LLMError
from ..models import AggregatedSources, GeminiStatus
from .brief_builder import REQUIRED_SECTIONS, TRACEABILITY, traceability_line

logger = logging.getLogger("opsbrief.polish")

REQUIRED_LABELS = tuple(section.rstrip(":") for section in REQUIRED_SECTIONS)

TEMPLATE_REJECTED = "TEMPLATE_REJECTED"

POLISH_SYSTEM = (
    "You are an executive analyst writing for a C-level leader. "
    "You only use the data you are given."
)

POLISH_PROMPT = """Rewrite the executive brief below so it reads well for a leader.

Question from leader:
"{question}"

Deterministic brief (authoritative numbers):
{brief}

Source data (JSON, ok=false means the source was not visible):
{sources_json}

Rules:
- Keep exactly these section headers, each on its own line and in this order:
  What's happening:, Why it matters:, Who's impacted:, Risk level:, Recommended action:
- Keep the same risk level value and every number from the deterministic brief.
- Refer only to ServiceNow, Salesforce and SharePoint as systems.
- Call out sources with ok=false as visibility gaps.
- Do NOT expose IDs or internal field names. Do NOT invent data.
- Keep it under 250 words and use short bullets."""


@dataclass(frozen=True)
class PolishOutcome:
    text: str
    status: GeminiStatus


def _normalize(text: str) -> str:
    return (
        (text or "")
        .replace("’", "'")
        .replace("*", "")
        .replace("#", "")
        .replace("_", "")
        .lower()
    )


def template_violations(text: str, min_chars: int) -> List[str]:
    """Reasons ``text`` breaks the brief template; empty when acceptable."""
    normalized = _normalize(text)
    problems = [f"missing section '{label}'" for label in REQUIRED_LABELS if label.lower() not in normalized]
    if len((text or "").strip()) < min_chars:
        problems.append(f"shorter than {min_chars} characters")
    return problems


def _sources_json(sources: AggregatedSources) -> str:
    payload = sources.model_dump(mode="json", by_alias=True)
    docs = payload.get("sharePoint", {}).get("data")
    if isinstance(docs, dict):
        # The summary is enough; raw document text stays out of the prompt
        docs.pop("signalsText", None)
    return json.dumps(payload, indent=2)


def build_polish_prompt(brief: str, sources: AggregatedSources, question: str) -> str:
    return POLISH_PROMPT.format(
        question=question,
        brief=brief,
        sources_json=_sources_json(sources),
    )


async def polish_brief(
    brief: str,
    sources: AggregatedSources,
    question: str,
    llm: Optional[GeminiClient],
    enabled: bool = True,
    min_chars: int = 200,
) -> PolishOutcome:
    """Return the polished brief if the LLM output passes the guard, else ``brief``."""
    if not enabled:
        return PolishOutcome(brief, GeminiStatus(used=False, error="Gemini polish disabled"))
    if llm is None:
        return PolishOutcome(brief, GeminiStatus(used=False, error="GEMINI_API_KEY not configured"))

    try:
        text = await llm.generate(build_polish_prompt(brief, sources, question), system=POLISH_SYSTEM)
    except LLMError as e:
        logger.warning("Gemini polish failed, using deterministic brief: %s", e)
        return PolishOutcome(brief, GeminiStatus(used=False, model=llm.model, error=str(e)))

    problems = template_violations(text, min_chars)
    if problems:
        error = f"{TEMPLATE_REJECTED}: {'; '.join(problems)}"
        logger.warning("Gemini polish rejected by template guard: %s", error)
        return PolishOutcome(brief, GeminiStatus(used=False, model=llm.model, error=error))

    polished = text.strip()
    if TRACEABILITY.lower() not in _normalize(polished):
        polished = f"{polished}\n\n{traceability_line(sources)}"
    return PolishOutcome(polished, GeminiStatus(used=True, model=llm.model))
