# ============================================================================
# Ops Brief - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines every configuration parameter for the Ops Brief service:
- API/CORS settings and logging
- ServiceNow, Salesforce and Microsoft Graph connection secrets
- Gemini (OpenAI-compatible endpoint) settings
- At-risk and risk-level thresholds used by the deterministic brief

Secrets are plain optional strings. Nothing here validates that a source is
usable; that is the job of the credential resolver, which degrades a single
source instead of failing the whole process.

Usage:
    from opsbrief.config import settings
    timeout = settings.source_timeout
"""

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # =========================================================================
    # API SETTINGS
    # =========================================================================
    api_title: str = "Ops Brief API"
    api_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Include exception details in 500 responses")
    log_level: str = Field(default="INFO", description="Logging level")

    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed origins for CORS (the dashboard is served from anywhere)",
    )

    # =========================================================================
    # SOURCE TIMEOUTS
    # =========================================================================
    source_timeout: float = Field(default=25.0, description="Timeout (s) for each outbound HTTP call")
    source_deadline: float = Field(default=60.0, description="Overall deadline (s) for one adapter")

    # =========================================================================
    # SERVICENOW
    # =========================================================================
    sn_base_url: Optional[str] = Field(default=None, description="ServiceNow instance URL")
    sn_user: Optional[str] = Field(default=None, description="ServiceNow basic-auth user")
    sn_pass: Optional[str] = Field(default=None, description="ServiceNow basic-auth password")
    sn_summary_path: str = Field(
        default="/api/txi/incident_summary",
        description="Scripted REST path returning the incident summary",
    )

    # =========================================================================
    # SALESFORCE
    # =========================================================================
    sf_username: Optional[str] = Field(default=None, description="Salesforce username")
    sf_password: Optional[str] = Field(default=None, description="Salesforce password")
    sf_token: Optional[str] = Field(default=None, description="Salesforce security token")
    sf_login_url: str = Field(default="https://login.salesforce.com", description="Salesforce login host")
    sf_api_version: str = Field(default="59.0", description="Salesforce API version")
    sf_account_name: Optional[str] = Field(
        default=None,
        description="Exact account name tried first; falls back to the hot-rating strategy",
    )
    sf_hot_rating: str = Field(default="Hot", description="Account Rating value for the fallback strategy")
    sf_opportunity_limit: int = Field(default=50, description="Max open opportunities fetched")
    sf_at_risk_probability: float = Field(default=30.0, description="Deals below this probability are at risk")
    sf_at_risk_close_days: int = Field(default=45, description="Deals closing within this many days are at risk")

    # =========================================================================
    # MICROSOFT GRAPH / SHAREPOINT
    # =========================================================================
    ms_tenant_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ms_tenant_id", "graph_tenant_id")
    )
    ms_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ms_client_id", "graph_client_id")
    )
    ms_client_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ms_client_secret", "graph_client_secret")
    )
    ms_graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    ms_graph_token_url: Optional[str] = Field(
        default=None,
        description="Override for the token endpoint (defaults to the tenant's v2.0 endpoint)",
    )
    ms_graph_scope: str = Field(default="https://graph.microsoft.com/.default")

    sharepoint_site_name: str = Field(default="Vation GTM", description="Site resolved by search")
    sharepoint_library_name: str = Field(default="Documents", description="Document library (drive) name")
    sharepoint_seed_files: List[str] = Field(
        default=[
            "Annual EBC Review Notes.txt",
            "EBC_Account_Health_Risk.docx",
            "IT_Operations_Weekly_Report.docx",
            "Sales_Risk_Accounts_List.docx",
        ],
        description="Files resolved by path when keyword search finds nothing usable",
    )
    sharepoint_seed_folders: List[str] = Field(default=["", "General"])
    sharepoint_search_size: int = Field(default=10, description="Max search hits considered")
    sharepoint_max_files: int = Field(default=3, description="Max files downloaded per request")
    sharepoint_max_chars: int = Field(default=8000, description="Character budget per extracted file")

    # =========================================================================
    # GEMINI (OPENAI-COMPATIBLE ENDPOINT)
    # =========================================================================
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias=AliasChoices("gemini_model", "gemini_txi_model"),
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible Gemini base URL",
    )
    gemini_timeout: float = Field(default=30.0, description="Timeout (s) for one Gemini request")
    gemini_max_retries: int = Field(default=2, description="Retries on 429/503 only")
    gemini_backoff_seconds: float = Field(default=1.0, description="Base for exponential backoff")
    gemini_polish_enabled: bool = Field(default=True, description="Rewrite the brief with Gemini")
    gemini_min_chars: int = Field(default=200, description="Shortest polished brief accepted")

    # =========================================================================
    # RISK THRESHOLDS (DETERMINISTIC BRIEF)
    # =========================================================================
    risk_high_priority_high: int = Field(default=50)
    risk_high_priority_medium: int = Field(default=10)
    risk_revenue_high: float = Field(default=1_000_000.0)
    risk_revenue_medium: float = Field(default=250_000.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
