"""Tests for the shared pydantic models."""

from datetime import date

import pytest
from pydantic import ValidationError

from opsbrief.models import (
    AggregatedSources,
    AtRiskPolicy,
    CrmOpportunity,
    CrmSnapshot,
    DocumentDigest,
    IncidentSummary,
    SourceName,
    SourceResult,
)

TODAY = date(2025, 1, 10)


class TestSourceResult:
    """Exactly one of data and error."""

    def test_success(self, incident_summary):
        result = SourceResult.success(SourceName.SERVICENOW, incident_summary)
        assert result.ok is True
        assert result.error is None
        assert result.data == incident_summary

    def test_failure(self):
        result = SourceResult.failure(SourceName.SALESFORCE, "NO_MATCH: nothing")
        assert result.ok is False
        assert result.data is None
        assert result.error == "NO_MATCH: nothing"

    def test_failure_never_has_empty_error(self):
        result = SourceResult.failure(SourceName.SHAREPOINT, "   ")
        assert result.error == "SharePoint failed without a message"

    def test_ok_without_data_rejected(self):
        with pytest.raises(ValidationError):
            SourceResult(source=SourceName.SERVICENOW, ok=True)

    def test_failure_with_data_rejected(self, incident_summary):
        with pytest.raises(ValidationError):
            SourceResult(source=SourceName.SERVICENOW, ok=False, error="PARSE: x", data=incident_summary)

    def test_frozen(self):
        result = SourceResult.failure(SourceName.SALESFORCE, "NO_MATCH: nothing")
        with pytest.raises(ValidationError):
            result.ok = True

    def test_serialises_camel_case(self, make_sources):
        payload = make_sources().model_dump(mode="json", by_alias=True)
        assert set(payload) == {"serviceNow", "salesforce", "sharePoint"}
        assert payload["serviceNow"]["data"]["totalHighPriority"] == 78
        assert payload["salesforce"]["data"]["atRiskSummary"] == {"opportunityCount": 2, "totalAmount": 240000.0}

    def test_payload_type_survives_json(self, make_sources):
        """Each source keeps its own payload model when re-validated from JSON."""
        restored = AggregatedSources.model_validate_json(make_sources().model_dump_json(by_alias=True))
        assert isinstance(restored.service_now.data, IncidentSummary)
        assert isinstance(restored.salesforce.data, CrmSnapshot)
        assert isinstance(restored.share_point.data, DocumentDigest)


class TestIncidentSummary:
    def test_total_derived_from_p1_p2(self):
        summary = IncidentSummary.model_validate({
            "byPriority": [{"priority": 1, "count": 4}, {"priority": "2", "count": 3}, {"priority": "3", "count": 9}],
        })
        assert summary.total_high_priority == 7
        assert summary.count_for("3") == 9

    def test_explicit_total_wins(self):
        summary = IncidentSummary.model_validate({"totalHighPriority": 78, "byPriority": []})
        assert summary.total_high_priority == 78

    def test_rejects_bad_shape(self):
        with pytest.raises(ValidationError):
            IncidentSummary.model_validate({"byPriority": "lots"})


class TestAtRiskPolicy:
    """Probability below threshold OR closing within N days (overdue included)."""

    def _opp(self, probability=None, close_date=None) -> CrmOpportunity:
        return CrmOpportunity(id="006X", name="Deal", amount=1000, probability=probability, close_date=close_date)

    def test_low_probability(self):
        assert AtRiskPolicy().reasons(self._opp(probability=29.5), TODAY) == ["probability 29.5% < 30%"]

    def test_probability_at_threshold_is_not_at_risk(self):
        assert AtRiskPolicy().reasons(self._opp(probability=30), TODAY) == []

    def test_closing_on_last_day_of_window(self):
        assert AtRiskPolicy().reasons(self._opp(close_date=date(2025, 2, 24)), TODAY) == ["closes in 45 days"]

    def test_closing_after_window(self):
        assert AtRiskPolicy().reasons(self._opp(close_date=date(2025, 2, 25)), TODAY) == []

    def test_overdue(self):
        assert AtRiskPolicy().reasons(self._opp(close_date=date(2025, 1, 1)), TODAY) == ["close date overdue by 9 days"]

    def test_both_reasons(self):
        reasons = AtRiskPolicy(probability_below=50, close_within_days=10).reasons(
            self._opp(probability=10, close_date=date(2025, 1, 15)), TODAY
        )
        assert reasons == ["probability 10% < 50%", "closes in 5 days"]

    def test_unknown_fields_are_not_at_risk(self):
        assert AtRiskPolicy().reasons(self._opp(), TODAY) == []
