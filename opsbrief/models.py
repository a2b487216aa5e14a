# opsbrief/models.py
"""
Pydantic models shared by the adapters, the brief builder and the API.

JSON uses camelCase (``totalHighPriority``, ``combinedAnswer``) while Python
code uses snake_case; every model accepts both on input.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# SOURCES
# ============================================================================

class SourceName(str, Enum):
    """Keys of the ``sources`` record in the response envelope."""

    SERVICENOW = "serviceNow"
    SALESFORCE = "salesforce"
    SHAREPOINT = "sharePoint"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    SourceName.SERVICENOW: "ServiceNow",
    SourceName.SALESFORCE: "Salesforce",
    SourceName.SHAREPOINT: "SharePoint",
}


# ---- ServiceNow -------------------------------------------------------------

class PriorityCount(CamelModel):
    priority: str
    count: int = 0

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_as_text(cls, value: Any) -> str:
        return str(value).strip()


class IncidentSummary(CamelModel):
    """Incident summary returned by the ServiceNow scripted REST endpoint."""

    total_high_priority: Optional[int] = None
    by_priority: List[PriorityCount] = Field(default_factory=list)
    ebc_incidents: List[Dict[str, Any]] = Field(default_factory=list)
    generated_at: Optional[str] = None

    @model_validator(mode="after")
    def _derive_total(self) -> "IncidentSummary":
        if self.total_high_priority is None:
            self.total_high_priority = self.count_for("1") + self.count_for("2")
        return self

    def count_for(self, priority: str) -> int:
        return sum(p.count for p in self.by_priority if p.priority == priority)


# ---- Salesforce -------------------------------------------------------------

class CrmAccount(CamelModel):
    id: str
    name: str
    industry: Optional[str] = None
    rating: Optional[str] = None
    type: Optional[str] = None
    annual_revenue: Optional[float] = None


class CrmOpportunity(CamelModel):
    id: str
    name: str
    stage_name: Optional[str] = None
    amount: float = 0.0
    close_date: Optional[date] = None
    probability: Optional[float] = None
    reasons: List[str] = Field(default_factory=list)


class AtRiskPolicy(CamelModel):
    """
    Portable at-risk heuristic for open opportunities.

    A deal is at risk when its probability is below ``probability_below`` or
    it closes within ``close_within_days`` days of ``today`` (overdue deals
    included). Organisation-specific custom fields are never consulted.
    """

    probability_below: float = 30.0
    close_within_days: int = 45

    def reasons(self, opportunity: CrmOpportunity, today: date) -> List[str]:
        found: List[str] = []
        if opportunity.probability is not None and opportunity.probability < self.probability_below:
            found.append(f"probability {opportunity.probability:g}% < {self.probability_below:g}%")
        if opportunity.close_date is not None:
            days_left = (opportunity.close_date - today).days
            if days_left < 0:
                found.append(f"close date overdue by {-days_left} days")
            elif days_left <= self.close_within_days:
                found.append(f"closes in {days_left} days")
        return found


class AtRiskSummary(CamelModel):
    opportunity_count: int = 0
    total_amount: float = 0.0


class CrmSnapshot(CamelModel):
    """Target account, its open deals and the at-risk subset."""

    strategy: str
    account: CrmAccount
    open_opportunities: List[CrmOpportunity] = Field(default_factory=list)
    at_risk_opportunities: List[CrmOpportunity] = Field(default_factory=list)
    at_risk_summary: AtRiskSummary = Field(default_factory=AtRiskSummary)
    policy: AtRiskPolicy = Field(default_factory=AtRiskPolicy)


# ---- SharePoint -------------------------------------------------------------

class DocumentFile(CamelModel):
    id: str
    name: str
    extension: str = ""
    drive_id: Optional[str] = None
    web_url: Optional[str] = None
    last_modified: Optional[str] = None
    size: Optional[int] = None
    chars: int = 0
    truncated: bool = False


class DocumentDigest(CamelModel):
    """Documents read from the library and the summary built from them."""

    site: str
    library: str
    query: str = ""
    attempt: str = "search"
    files: List[DocumentFile] = Field(default_factory=list)
    summary: str = ""
    summary_model: Optional[str] = None
    summary_error: Optional[str] = None
    signals_text: str = ""


def _payload_kind(value: Any) -> str:
    """Pick the payload model from its shape (dict input) or its class."""
    if isinstance(value, dict):
        if "account" in value:
            return "crm"
        if "library" in value or "site" in value:
            return "documents"
        return "incidents"
    if isinstance(value, CrmSnapshot):
        return "crm"
    if isinstance(value, DocumentDigest):
        return "documents"
    return "incidents"


SourcePayload = Annotated[
    Union[
        Annotated[IncidentSummary, Tag("incidents")],
        Annotated[CrmSnapshot, Tag("crm")],
        Annotated[DocumentDigest, Tag("documents")],
    ],
    Discriminator(_payload_kind),
]


class SourceResult(CamelModel):
    """
    Outcome of one adapter call.

    Exactly one of ``data`` and ``error`` is populated. Use ``success()`` and
    ``failure()`` rather than the constructor.
    """

    model_config = ConfigDict(frozen=True)

    source: SourceName
    ok: bool
    error: Optional[str] = None
    data: Optional[SourcePayload] = None

    @model_validator(mode="after")
    def _exactly_one_of_data_or_error(self) -> "SourceResult":
        if self.ok and (self.data is None or self.error is not None):
            raise ValueError("successful SourceResult needs data and no error")
        if not self.ok and (not self.error or self.data is not None):
            raise ValueError("failed SourceResult needs a non-empty error and no data")
        return self

    @classmethod
    def success(cls, source: SourceName, data: SourcePayload) -> "SourceResult":
        return cls(source=source, ok=True, data=data)

    @classmethod
    def failure(cls, source: SourceName, error: Any) -> "SourceResult":
        message = str(error).strip() or f"{source.label} failed without a message"
        return cls(source=source, ok=False, error=message)


class AggregatedSources(CamelModel):
    """Per-request record of every source result. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    service_now: SourceResult
    salesforce: SourceResult
    share_point: SourceResult

    def by_name(self) -> Dict[SourceName, SourceResult]:
        return {
            SourceName.SERVICENOW: self.service_now,
            SourceName.SALESFORCE: self.salesforce,
            SourceName.SHAREPOINT: self.share_point,
        }


# ============================================================================
# API
# ============================================================================

class QuestionRequest(CamelModel):
    question: str


class GeminiStatus(CamelModel):
    used: bool = False
    model: Optional[str] = None
    error: Optional[str] = None


class BriefResponse(CamelModel):
    question: str
    combined_answer: str
    sources: AggregatedSources
    gemini: GeminiStatus
    generated_at: datetime


class DocumentAnswer(CamelModel):
    answer: str
    source: str = "sharepoint"
    ok: bool
    error: Optional[str] = None
    query: str = ""
    attempt: Optional[str] = None
    chosen_files: List[DocumentFile] = Field(default_factory=list)


class SignalsResponse(CamelModel):
    source: str = "SharePoint"
    ok: bool
    error: Optional[str] = None
    files_found: List[DocumentFile] = Field(default_factory=list)
    signals_text: str = ""


class CrmAnswer(CamelModel):
    answer: str
    salesforce: SourceResult
    gemini: GeminiStatus


class HealthResponse(CamelModel):
    status: str
    service: str
    version: str


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
