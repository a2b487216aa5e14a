# opsbrief/services/fanout.py
"""
Fan-out coordinator.

Runs every adapter concurrently and waits for all of them to settle. An
adapter that raises (breaking its own contract) only turns its own slot into
an UNEXPECTED failure; the others are untouched.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from ..errors import ErrorCategory, format_error
from ..models import AggregatedSources, SourceName, SourceResult

logger = logging.getLogger("opsbrief.fanout")


async def gather_sources(adapters: Iterable, question: Optional[str] = None) -> AggregatedSources:
    """
    Fetch every source concurrently (settle-all, not fail-fast).

    Args:
        adapters: objects with a ``SOURCE`` name and an async ``fetch(question)``
        question: forwarded to each adapter

    Returns:
        AggregatedSources with one result per SourceName; sources without an
        adapter are reported as not configured.
    """
    adapters = list(adapters)
    outcomes = await asyncio.gather(
        *(adapter.fetch(question) for adapter in adapters),
        return_exceptions=True,
    )

    results: Dict[SourceName, SourceResult] = {}
    for adapter, outcome in zip(adapters, outcomes):
        source = adapter.SOURCE
        if isinstance(outcome, SourceResult):
            results[source] = outcome
        elif isinstance(outcome, BaseException):
            logger.error("%s adapter raised %s: %s", source.label, type(outcome).__name__, outcome)
            results[source] = SourceResult.failure(
                source,
                format_error(ErrorCategory.UNEXPECTED, f"{source.label} adapter raised {type(outcome).__name__}"),
            )
        else:
            results[source] = SourceResult.failure(
                source,
                format_error(ErrorCategory.UNEXPECTED, f"{source.label} adapter returned no result"),
            )

    for source in SourceName:
        if source not in results:
            results[source] = SourceResult.failure(
                source,
                format_error(ErrorCategory.CONFIG_MISSING, f"{source.label} adapter not configured"),
            )

    logger.info(
        "Fan-out complete: %s",
        ", ".join(f"{s.label}={'ok' if r.ok else 'error'}" for s, r in results.items()),
    )
    return AggregatedSources(
        service_now=results[SourceName.SERVICENOW],
        salesforce=results[SourceName.SALESFORCE],
        share_point=results[SourceName.SHAREPOINT],
    )
