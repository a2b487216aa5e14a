# opsbrief/services/credentials.py
"""
Credential resolver.

Turns the flat ``Settings`` object into one typed, frozen config per external
system. A source whose required keys are blank resolves to a ``SourceResult``
failure instead of a config, so the caller can carry on with the other
sources. Nothing here raises and nothing reads ``os.environ`` directly.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from ..config import Settings, settings as default_settings
from ..errors import ConfigurationError
from ..models import SourceName, SourceResult

logger = logging.getLogger("opsbrief.credentials")


class ServiceNowConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str
    user: str
    password: str
    summary_path: str


class SalesforceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: str
    security_token: str
    login_url: str
    api_version: str
    account_name: Optional[str] = None
    hot_rating: str = "Hot"
    opportunity_limit: int = 50
    at_risk_probability: float = 30.0
    at_risk_close_days: int = 45


class GraphConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    client_id: str
    client_secret: str
    base_url: str
    token_url: str
    scope: str
    site_name: str
    library_name: str
    seed_files: Tuple[str, ...] = ()
    seed_folders: Tuple[str, ...] = ("",)
    search_size: int = 10
    max_files: int = 3
    max_chars: int = 8000


class GeminiConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str
    model: str
    base_url: str
    timeout: float
    max_retries: int
    backoff_seconds: float


# Required settings per source: settings attribute -> environment key
_REQUIRED: Dict[SourceName, List[Tuple[str, str]]] = {
    SourceName.SERVICENOW: [
        ("sn_base_url", "SN_BASE_URL"),
        ("sn_user", "SN_USER"),
        ("sn_pass", "SN_PASS"),
    ],
    SourceName.SALESFORCE: [
        ("sf_username", "SF_USERNAME"),
        ("sf_password", "SF_PASSWORD"),
        ("sf_token", "SF_TOKEN"),
    ],
    SourceName.SHAREPOINT: [
        ("ms_tenant_id", "MS_TENANT_ID"),
        ("ms_client_id", "MS_CLIENT_ID"),
        ("ms_client_secret", "MS_CLIENT_SECRET"),
    ],
}


class CredentialResolver:
    """Resolve per-source configuration from a ``Settings`` instance."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def missing_keys(self, source: SourceName) -> List[str]:
        return [
            env_key
            for attr, env_key in _REQUIRED[source]
            if not str(getattr(self.settings, attr, None) or "").strip()
        ]

    def _missing(self, source: SourceName) -> Optional[SourceResult]:
        missing = self.missing_keys(source)
        if not missing:
            return None
        error = ConfigurationError(source.label, missing)
        logger.warning("%s disabled: %s", source.label, error)
        return SourceResult.failure(source, error)

    def servicenow(self) -> Union[ServiceNowConfig, SourceResult]:
        failure = self._missing(SourceName.SERVICENOW)
        if failure:
            return failure
        s = self.settings
        return ServiceNowConfig(
            base_url=s.sn_base_url.rstrip("/"),
            user=s.sn_user,
            password=s.sn_pass,
            summary_path="/" + s.sn_summary_path.lstrip("/"),
        )

    def salesforce(self) -> Union[SalesforceConfig, SourceResult]:
        failure = self._missing(SourceName.SALESFORCE)
        if failure:
            return failure
        s = self.settings
        return SalesforceConfig(
            username=s.sf_username,
            password=s.sf_password,
            security_token=s.sf_token,
            login_url=s.sf_login_url.rstrip("/"),
            api_version=s.sf_api_version,
            account_name=(s.sf_account_name or "").strip() or None,
            hot_rating=s.sf_hot_rating,
            opportunity_limit=s.sf_opportunity_limit,
            at_risk_probability=s.sf_at_risk_probability,
            at_risk_close_days=s.sf_at_risk_close_days,
        )

    def sharepoint(self) -> Union[GraphConfig, SourceResult]:
        failure = self._missing(SourceName.SHAREPOINT)
        if failure:
            return failure
        s = self.settings
        token_url = s.ms_graph_token_url or (
            f"https://login.microsoftonline.com/{s.ms_tenant_id}/oauth2/v2.0/token"
        )
        return GraphConfig(
            tenant_id=s.ms_tenant_id,
            client_id=s.ms_client_id,
            client_secret=s.ms_client_secret,
            base_url=s.ms_graph_base_url.rstrip("/"),
            token_url=token_url,
            scope=s.ms_graph_scope,
            site_name=s.sharepoint_site_name,
            library_name=s.sharepoint_library_name,
            seed_files=tuple(s.sharepoint_seed_files),
            seed_folders=tuple(s.sharepoint_seed_folders) or ("",),
            search_size=s.sharepoint_search_size,
            max_files=s.sharepoint_max_files,
            max_chars=s.sharepoint_max_chars,
        )

    def gemini(self) -> Optional[GeminiConfig]:
        """Gemini config, or None when ``GEMINI_API_KEY`` is blank."""
        s = self.settings
        if not (s.gemini_api_key or "").strip():
            return None
        return GeminiConfig(
            api_key=s.gemini_api_key,
            model=s.gemini_model,
            base_url=s.gemini_base_url,
            timeout=s.gemini_timeout,
            max_retries=s.gemini_max_retries,
            backoff_seconds=s.gemini_backoff_seconds,
        )
