# opsbrief/services/briefing_service.py
"""
Briefing service: wires the resolver, adapters, brief builder and LLM polish
together for the HTTP routers.

One ``BriefingService`` is shared by the app; it holds configuration only.
Every call builds fresh adapters (and therefore fresh HTTP clients), so no
state is carried between requests.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, cast

import httpx

from ..config import Settings
from ..connectors.base import SourceAdapter
from ..connectors.gemini import GeminiClient
from ..connectors.salesforce import SalesforceAdapter
from ..connectors.servicenow import ServiceNowAdapter
from ..connectors.sharepoint import SharePointAdapter
from ..errors import LLMError
from ..models import (
    BriefResponse,
    CrmAnswer,
    CrmSnapshot,
    DocumentAnswer,
    DocumentDigest,
    GeminiStatus,
    SignalsResponse,
)
from .brief_builder import RiskThresholds, build_brief, format_currency, visibility_gap
from .credentials import CredentialResolver
from .fanout import gather_sources
from .polish import polish_brief

logger = logging.getLogger("opsbrief.briefing")

CRM_PROMPT = """You are an AI assistant connected to Salesforce CRM.

User question:
{question}

Salesforce data (JSON):
{crm_json}

Using ONLY the Salesforce data above, answer the user's question in simple
English, in 3-4 sentences. If the answer is not in the data, say briefly that
you cannot find it in Salesforce."""


def crm_fallback_answer(snapshot: CrmSnapshot) -> str:
    """Plain answer used when the LLM is unavailable."""
    summary = snapshot.at_risk_summary
    return (
        f"{snapshot.account.name} has {len(snapshot.open_opportunities)} open deal(s) in Salesforce; "
        f"{summary.opportunity_count} are flagged at risk, worth {format_currency(summary.total_amount)} in total."
    )


class BriefingService:
    """Entry points for the dashboard, document and CRM endpoints."""

    def __init__(
        self,
        resolver: Optional[CredentialResolver] = None,
        llm: Optional[GeminiClient] = None,
        thresholds: Optional[RiskThresholds] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.resolver = resolver or CredentialResolver()
        self.llm = llm
        self.thresholds = thresholds or RiskThresholds.from_settings(self.resolver.settings)
        self._transport = transport
        self._today = today

    @classmethod
    def from_settings(cls, settings: Settings) -> "BriefingService":
        resolver = CredentialResolver(settings)
        return cls(resolver, llm=GeminiClient.from_resolver(resolver))

    @property
    def settings(self) -> Settings:
        return self.resolver.settings

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------

    def servicenow_adapter(self) -> ServiceNowAdapter:
        return ServiceNowAdapter(self.resolver, transport=self._transport)

    def salesforce_adapter(self) -> SalesforceAdapter:
        return SalesforceAdapter(self.resolver, transport=self._transport, today=self._today)

    def sharepoint_adapter(self, seeded_only: bool = False) -> SharePointAdapter:
        return SharePointAdapter(
            self.resolver,
            transport=self._transport,
            llm=None if seeded_only else self.llm,
            seeded_only=seeded_only,
        )

    def adapters(self) -> List[SourceAdapter]:
        return [self.servicenow_adapter(), self.salesforce_adapter(), self.sharepoint_adapter()]

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def answer(self, question: str) -> BriefResponse:
        """Fan out, build the deterministic brief and try the LLM polish."""
        sources = await gather_sources(self.adapters(), question)
        brief = build_brief(sources, self.thresholds)
        outcome = await polish_brief(
            brief,
            sources,
            question,
            self.llm,
            enabled=self.settings.gemini_polish_enabled,
            min_chars=self.settings.gemini_min_chars,
        )
        logger.info("Brief ready (gemini used=%s)", outcome.status.used)
        return BriefResponse(
            question=question,
            combined_answer=outcome.text,
            sources=sources,
            gemini=outcome.status,
            generated_at=datetime.now(timezone.utc),
        )

    async def ask_documents(self, question: str) -> DocumentAnswer:
        """SharePoint document assistant."""
        result = await self.sharepoint_adapter().fetch(question)
        if not result.ok:
            return DocumentAnswer(
                answer=f"I could not answer from SharePoint: {visibility_gap(result)}.",
                ok=False,
                error=result.error,
            )
        digest = cast(DocumentDigest, result.data)
        return DocumentAnswer(
            answer=digest.summary,
            ok=True,
            query=digest.query,
            attempt=digest.attempt,
            chosen_files=digest.files,
        )

    async def read_signals(self) -> SignalsResponse:
        """Raw text of the seeded SharePoint files, no LLM involved."""
        result = await self.sharepoint_adapter(seeded_only=True).fetch()
        if not result.ok:
            return SignalsResponse(ok=False, error=result.error)
        digest = cast(DocumentDigest, result.data)
        return SignalsResponse(ok=True, files_found=digest.files, signals_text=digest.signals_text)

    async def ask_crm(self, question: str) -> CrmAnswer:
        """Answer a CRM question from the Salesforce snapshot."""
        result = await self.salesforce_adapter().fetch(question)
        if not result.ok:
            return CrmAnswer(
                answer=f"I cannot answer from Salesforce right now: {visibility_gap(result)}.",
                salesforce=result,
                gemini=GeminiStatus(used=False, error="Not attempted: Salesforce data unavailable"),
            )

        snapshot = cast(CrmSnapshot, result.data)
        fallback = crm_fallback_answer(snapshot)
        if self.llm is None:
            return CrmAnswer(
                answer=fallback,
                salesforce=result,
                gemini=GeminiStatus(used=False, error="GEMINI_API_KEY not configured"),
            )

        prompt = CRM_PROMPT.format(
            question=question,
            crm_json=json.dumps(snapshot.model_dump(mode="json", by_alias=True), indent=2),
        )
        try:
            text = await self.llm.generate(prompt)
        except LLMError as e:
            logger.warning("CRM answer fell back to summary sentence: %s", e)
            return CrmAnswer(
                answer=fallback,
                salesforce=result,
                gemini=GeminiStatus(used=False, model=self.llm.model, error=str(e)),
            )
        return CrmAnswer(answer=text, salesforce=result, gemini=GeminiStatus(used=True, model=self.llm.model))

    async def close(self) -> None:
        if self.llm is not None:
            await self.llm.close()
