"""
SourceAdapter ABC - Base class for the ticketing, CRM and document adapters.

Every adapter follows the same contract:
    1. Resolve typed configuration through the injected CredentialResolver
       (a missing secret short-circuits to a CONFIG_MISSING failure)
    2. Run the system-specific ``_fetch()`` under an overall deadline, with
       every outbound call bounded by an ``httpx.Timeout``
    3. Optionally enrich the payload in ``_complete()`` with what is left of
       the deadline; a slow enrichment never fails the source
    4. Collapse any exception into a ``SourceResult`` failure

Subclasses must implement:
    - SOURCE: the SourceName this adapter fills in
    - resolve_config(): typed config or a failure SourceResult
    - _fetch(): returns the adapter's payload model or raises
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import ErrorCategory, ParseError, SourceError, TransportError, format_error
from ..models import SourceName, SourcePayload, SourceResult
from ..services.credentials import CredentialResolver

logger = logging.getLogger("opsbrief.connectors")


class SourceAdapter(ABC):
    """
    Base class for external source adapters.

    ``fetch()`` never raises: configuration, transport, semantic-empty and
    parse failures all come back as ``SourceResult(ok=False)``.
    """

    SOURCE: SourceName  # Key in AggregatedSources

    def __init__(
        self,
        resolver: CredentialResolver,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.resolver = resolver
        self.timeout = timeout or resolver.settings.source_timeout
        self.deadline = deadline or resolver.settings.source_deadline
        self._transport = transport

    @property
    def label(self) -> str:
        return self.SOURCE.label

    @abstractmethod
    def resolve_config(self) -> Union[BaseModel, SourceResult]:
        """Typed configuration, or a CONFIG_MISSING failure result."""
        ...

    @abstractmethod
    async def _fetch(self, config: Any, question: Optional[str]) -> SourcePayload:
        """Talk to the external system and return the normalized payload."""
        ...

    async def _complete(self, data: SourcePayload, question: Optional[str], remaining: float) -> SourcePayload:
        """
        Optional step run after ``_fetch()`` with whatever is left of the deadline.

        Must not raise: the payload is already good and a slow or failed
        enrichment only degrades it.
        """
        return data

    def _client(self, **kwargs) -> httpx.AsyncClient:
        """New client per call; nothing is shared across requests."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            **kwargs,
        )

    async def fetch(self, question: Optional[str] = None) -> SourceResult:
        config = self.resolve_config()
        if isinstance(config, SourceResult):
            return config

        start_time = time.monotonic()
        try:
            data = await asyncio.wait_for(self._fetch(config, question), timeout=self.deadline)
            remaining = self.deadline - (time.monotonic() - start_time)
            data = await self._complete(data, question, max(remaining, 0.0))
        except SourceError as e:
            error = str(e)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            error = format_error(
                ErrorCategory.TRANSPORT,
                f"{self.label} request timed out",
            )
        except httpx.HTTPError as e:
            error = format_error(
                ErrorCategory.TRANSPORT,
                f"{self.label} request failed: {type(e).__name__}: {e}",
            )
        except (ValidationError, json.JSONDecodeError) as e:
            error = format_error(
                ErrorCategory.PARSE,
                f"{self.label} returned an unexpected payload: {type(e).__name__}",
            )
        except Exception as e:
            logger.exception("%s adapter crashed", self.label)
            error = format_error(ErrorCategory.UNEXPECTED, f"{self.label} adapter error: {e}")
        else:
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            logger.info("%s fetch ok in %dms", self.label, elapsed_ms)
            return SourceResult.success(self.SOURCE, data)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.warning("%s fetch failed in %dms: %s", self.label, elapsed_ms, error)
        return SourceResult.failure(self.SOURCE, error)


def _status_message(response: httpx.Response) -> str:
    """Short error text from a vendor error body, without echoing the whole payload."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or ""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("code") or "")
        if isinstance(err, str):
            return body.get("error_description") or err
    if isinstance(body, list) and body and isinstance(body[0], dict):
        return str(body[0].get("message") or body[0].get("errorCode") or "")
    return response.reason_phrase or ""


def ensure_success(response: httpx.Response, what: str) -> None:
    """Raise TransportError for a non-2xx response."""
    if response.is_success:
        return
    detail = _status_message(response)
    message = f"{what} failed with HTTP {response.status_code}"
    if detail:
        message = f"{message}: {detail}"
    raise TransportError(message, status_code=response.status_code)


def read_json(response: httpx.Response, what: str) -> Dict[str, Any]:
    """Check the status and decode a JSON object body."""
    ensure_success(response, what)
    try:
        body = response.json()
    except ValueError as e:
        raise ParseError(f"{what} returned non-JSON") from e
    if not isinstance(body, dict):
        raise ParseError(f"{what} returned {type(body).__name__}, expected an object")
    return body
