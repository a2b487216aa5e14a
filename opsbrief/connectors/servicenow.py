"""ServiceNow adapter: incident summary from a Scripted REST endpoint (Basic auth)."""

import logging
from typing import Any, Dict, Optional, Union

from ..models import IncidentSummary, SourceName, SourceResult
from ..services.credentials import ServiceNowConfig
from .base import SourceAdapter, read_json

logger = logging.getLogger("opsbrief.servicenow")

# Scripted REST APIs wrap the body in a single top-level key
_WRAPPER_KEYS = ("result",)


def unwrap_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Strip a known single-level wrapper (``{"result": {...}}``) if present."""
    for key in _WRAPPER_KEYS:
        inner = body.get(key)
        if isinstance(inner, dict) and len(body) == 1:
            return inner
    return body


class ServiceNowAdapter(SourceAdapter):
    """Fetch ``{totalHighPriority, byPriority, ...}`` from ServiceNow."""

    SOURCE = SourceName.SERVICENOW

    def resolve_config(self) -> Union[ServiceNowConfig, SourceResult]:
        return self.resolver.servicenow()

    async def _fetch(self, config: ServiceNowConfig, question: Optional[str]) -> IncidentSummary:
        url = f"{config.base_url}{config.summary_path}"
        async with self._client() as client:
            response = await client.get(
                url,
                auth=(config.user, config.password),
                headers={"Accept": "application/json"},
            )
        body = read_json(response, "ServiceNow incident summary")
        summary = IncidentSummary.model_validate(unwrap_payload(body))
        logger.debug(
            "ServiceNow summary: high_priority=%s buckets=%d",
            summary.total_high_priority,
            len(summary.by_priority),
        )
        return summary
