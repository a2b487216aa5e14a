# opsbrief/services/brief_builder.py
"""
Deterministic executive brief.

``build_brief()`` is a pure function of ``AggregatedSources``: no network, no
clock, no randomness. It is the guaranteed answer whenever the LLM polish is
skipped or rejected, so it must always return text.

Template (section headers are fixed and checked by the template guard):

    Executive brief
    What's happening:
    Why it matters:
    Who's impacted:
    Risk level: High|Medium|Low
    Recommended action:
    Traceability: ServiceNow: OK | Salesforce: OK | SharePoint: ERROR (NO_MATCH)
"""

from dataclasses import dataclass
from typing import List, Optional

from ..config import Settings
from ..errors import ErrorCategory
from ..models import (
    AggregatedSources,
    CrmSnapshot,
    DocumentDigest,
    IncidentSummary,
    SourceResult,
)

TITLE = "Executive brief"
SECTION_HAPPENING = "What's happening:"
SECTION_WHY = "Why it matters:"
SECTION_WHO = "Who's impacted:"
SECTION_RISK = "Risk level:"
SECTION_ACTION = "Recommended action:"
TRACEABILITY = "Traceability:"

REQUIRED_SECTIONS = (
    SECTION_HAPPENING,
    SECTION_WHY,
    SECTION_WHO,
    SECTION_RISK,
    SECTION_ACTION,
)

RISK_HIGH = "High"
RISK_MEDIUM = "Medium"
RISK_LOW = "Low"

_SUMMARY_LINE_CHARS = 200

_GAP_PHRASES = {
    ErrorCategory.CONFIG_MISSING: "not connected (credentials are not configured)",
    ErrorCategory.TRANSPORT: "could not be reached",
    ErrorCategory.NO_MATCH: "returned no matching records or documents",
    ErrorCategory.FOUND_FILES_BUT_NO_TEXT: "had matching documents that could not be read",
    ErrorCategory.PARSE: "returned data in an unexpected format",
    ErrorCategory.RATE_LIMITED: "is rate limited",
    ErrorCategory.UNEXPECTED: "failed unexpectedly",
}


@dataclass(frozen=True)
class RiskThresholds:
    """Fixed thresholds for the ordinal risk level."""

    high_priority_high: int = 50
    high_priority_medium: int = 10
    revenue_high: float = 1_000_000.0
    revenue_medium: float = 250_000.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RiskThresholds":
        return cls(
            high_priority_high=settings.risk_high_priority_high,
            high_priority_medium=settings.risk_high_priority_medium,
            revenue_high=settings.risk_revenue_high,
            revenue_medium=settings.risk_revenue_medium,
        )


DEFAULT_THRESHOLDS = RiskThresholds()


def format_currency(amount: float) -> str:
    return f"${amount:,.0f}"


def error_category(result: SourceResult) -> ErrorCategory:
    prefix = (result.error or "").split(":", 1)[0].strip()
    try:
        return ErrorCategory(prefix)
    except ValueError:
        return ErrorCategory.UNEXPECTED


def visibility_gap(result: SourceResult) -> str:
    """A failed source phrased for a reader, not as a stack trace."""
    phrase = _GAP_PHRASES[error_category(result)]
    if "timed out" in (result.error or ""):
        phrase = "timed out"
    return f"visibility gap, {result.source.label} {phrase}"


def _incidents(sources: AggregatedSources) -> Optional[IncidentSummary]:
    result = sources.service_now
    return result.data if result.ok and isinstance(result.data, IncidentSummary) else None


def _crm(sources: AggregatedSources) -> Optional[CrmSnapshot]:
    result = sources.salesforce
    return result.data if result.ok and isinstance(result.data, CrmSnapshot) else None


def _documents(sources: AggregatedSources) -> Optional[DocumentDigest]:
    result = sources.share_point
    return result.data if result.ok and isinstance(result.data, DocumentDigest) else None


def _gaps(sources: AggregatedSources) -> List[SourceResult]:
    return [r for r in sources.by_name().values() if not r.ok]


def _first_summary_line(text: str) -> str:
    for line in (text or "").splitlines():
        cleaned = line.strip().lstrip("-*•#0123456789.) ").strip()
        if cleaned:
            if len(cleaned) > _SUMMARY_LINE_CHARS:
                cleaned = cleaned[:_SUMMARY_LINE_CHARS].rstrip() + "..."
            return cleaned
    return "no summary text available"


def assess_risk(sources: AggregatedSources, thresholds: RiskThresholds = DEFAULT_THRESHOLDS) -> str:
    """High/Medium/Low from incident load, at-risk revenue and visibility gaps."""
    incidents = _incidents(sources)
    crm = _crm(sources)
    high_priority = incidents.total_high_priority if incidents else 0
    revenue = crm.at_risk_summary.total_amount if crm else 0.0

    if high_priority >= thresholds.high_priority_high or revenue >= thresholds.revenue_high:
        return RISK_HIGH
    if (
        high_priority >= thresholds.high_priority_medium
        or revenue >= thresholds.revenue_medium
        or _gaps(sources)
    ):
        return RISK_MEDIUM
    return RISK_LOW


def _happening(sources: AggregatedSources) -> List[str]:
    lines: List[str] = []

    incidents = _incidents(sources)
    if incidents:
        buckets = ", ".join(f"P{p.priority}={p.count}" for p in incidents.by_priority if p.priority in ("1", "2"))
        detail = f" ({buckets})" if buckets else ""
        lines.append(f"ServiceNow: {incidents.total_high_priority} high-priority incidents open{detail}.")
    else:
        lines.append(f"ServiceNow: {visibility_gap(sources.service_now)}.")

    crm = _crm(sources)
    if crm:
        summary = crm.at_risk_summary
        lines.append(
            f"Salesforce: {summary.opportunity_count} at-risk deal(s) worth "
            f"{format_currency(summary.total_amount)} on {crm.account.name} "
            f"({len(crm.open_opportunities)} open deal(s) tracked)."
        )
    else:
        lines.append(f"Salesforce: {visibility_gap(sources.salesforce)}.")

    docs = _documents(sources)
    if docs:
        names = ", ".join(f.name for f in docs.files)
        lines.append(f"SharePoint: {len(docs.files)} document(s) reviewed ({names}): {_first_summary_line(docs.summary)}")
    else:
        lines.append(f"SharePoint: {visibility_gap(sources.share_point)}.")
    return lines


def _why(sources: AggregatedSources, thresholds: RiskThresholds) -> List[str]:
    lines: List[str] = []
    incidents = _incidents(sources)
    if incidents and incidents.total_high_priority >= thresholds.high_priority_medium:
        lines.append(
            f"Service continuity: {incidents.total_high_priority} high-priority incidents "
            "put uptime and customer SLAs at risk."
        )
    elif incidents:
        lines.append(f"Service continuity: incident load is contained ({incidents.total_high_priority} high-priority).")

    crm = _crm(sources)
    if crm and crm.at_risk_summary.opportunity_count:
        lines.append(
            f"Revenue: {format_currency(crm.at_risk_summary.total_amount)} of pipeline on "
            f"{crm.account.name} may slip (probability below {crm.policy.probability_below:g}% "
            f"or closing within {crm.policy.close_within_days} days)."
        )
    elif crm:
        lines.append(f"Revenue: no deals on {crm.account.name} currently flagged at risk.")

    gaps = _gaps(sources)
    if gaps:
        labels = ", ".join(r.source.label for r in gaps)
        lines.append(f"Visibility: {labels} data is missing, so this view is incomplete.")
    if not lines:
        lines.append("No material operational or revenue signals were reported.")
    return lines


def _who(sources: AggregatedSources) -> List[str]:
    lines: List[str] = []
    incidents = _incidents(sources)
    if incidents and incidents.total_high_priority:
        lines.append("Customers and field teams served by systems with open P1/P2 incidents.")

    crm = _crm(sources)
    if crm:
        industry = f", {crm.account.industry}" if crm.account.industry else ""
        lines.append(f"{crm.account.name}{industry} and its account team.")

    docs = _documents(sources)
    if docs:
        lines.append(f"Owners of the reviewed documents in {docs.site} / {docs.library}.")

    gaps = _gaps(sources)
    if gaps:
        labels = ", ".join(r.source.label for r in gaps)
        lines.append(f"Leaders relying on {labels} data (currently not visible).")
    if not lines:
        lines.append("No specific teams or customers flagged.")
    return lines


def _actions(sources: AggregatedSources, thresholds: RiskThresholds) -> List[str]:
    lines: List[str] = []
    incidents = _incidents(sources)
    if incidents and incidents.total_high_priority >= thresholds.high_priority_medium:
        lines.append(
            f"Run a P1/P2 review with IT operations today and confirm owners for the "
            f"{incidents.count_for('1')} P1 incidents."
        )

    crm = _crm(sources)
    if crm and crm.at_risk_summary.opportunity_count:
        lines.append(
            f"Ask the {crm.account.name} account owner to review the "
            f"{crm.at_risk_summary.opportunity_count} at-risk deal(s) "
            f"({format_currency(crm.at_risk_summary.total_amount)}) this week."
        )

    for gap in _gaps(sources):
        lines.append(f"Restore {gap.source.label} access to close the visibility gap.")
    if not lines:
        lines.append("No immediate action; keep monitoring the daily brief.")
    return lines


def traceability_line(sources: AggregatedSources) -> str:
    parts = []
    for source, result in sources.by_name().items():
        status = "OK" if result.ok else f"ERROR ({error_category(result).value})"
        parts.append(f"{source.label}: {status}")
    return f"{TRACEABILITY} " + " | ".join(parts)


def build_brief(sources: AggregatedSources, thresholds: RiskThresholds = DEFAULT_THRESHOLDS) -> str:
    """Render the fixed-format executive brief for ``sources``."""
    out: List[str] = [TITLE]

    out.append(SECTION_HAPPENING)
    out.extend(f"- {line}" for line in _happening(sources))

    out.append(SECTION_WHY)
    out.extend(f"- {line}" for line in _why(sources, thresholds))

    out.append(SECTION_WHO)
    out.extend(f"- {line}" for line in _who(sources))

    out.append(f"{SECTION_RISK} {assess_risk(sources, thresholds)}")

    out.append(SECTION_ACTION)
    out.extend(f"- {line}" for line in _actions(sources, thresholds))

    out.append(traceability_line(sources))
    return "\n".join(out)


__all__ = [
    "REQUIRED_SECTIONS",
    "RiskThresholds",
    "DEFAULT_THRESHOLDS",
    "assess_risk",
    "build_brief",
    "format_currency",
    "traceability_line",
    "visibility_gap",
]
