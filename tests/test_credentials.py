"""Tests for the credential resolver."""

from opsbrief.config import Settings
from opsbrief.models import SourceName, SourceResult
from opsbrief.services.credentials import (
    CredentialResolver,
    GraphConfig,
    SalesforceConfig,
    ServiceNowConfig,
)


class TestMissingCredentials:
    """Blank keys resolve to a CONFIG_MISSING failure, never an exception."""

    def test_salesforce_names_missing_keys(self, make_settings):
        resolver = CredentialResolver(make_settings(sf_username=None, sf_token="  "))
        result = resolver.salesforce()

        assert isinstance(result, SourceResult)
        assert result.ok is False
        assert result.source == SourceName.SALESFORCE
        assert result.error == (
            "CONFIG_MISSING: Salesforce credentials not configured; missing env SF_USERNAME, SF_TOKEN"
        )

    def test_each_source_independent(self, make_settings):
        resolver = CredentialResolver(make_settings(sn_pass=None))
        assert isinstance(resolver.servicenow(), SourceResult)
        assert isinstance(resolver.salesforce(), SalesforceConfig)
        assert isinstance(resolver.sharepoint(), GraphConfig)

    def test_missing_keys_listing(self, make_settings):
        resolver = CredentialResolver(make_settings(ms_tenant_id=None, ms_client_secret=None))
        assert resolver.missing_keys(SourceName.SHAREPOINT) == ["MS_TENANT_ID", "MS_CLIENT_SECRET"]

    def test_no_gemini_key(self, make_settings):
        assert CredentialResolver(make_settings()).gemini() is None


class TestResolvedConfigs:
    def test_servicenow_normalises_urls(self, make_settings):
        config = CredentialResolver(
            make_settings(sn_base_url="https://sn.example.com/", sn_summary_path="api/x/summary")
        ).servicenow()

        assert isinstance(config, ServiceNowConfig)
        assert config.base_url == "https://sn.example.com"
        assert config.summary_path == "/api/x/summary"

    def test_salesforce_blank_account_name_is_none(self, make_settings):
        config = CredentialResolver(make_settings(sf_account_name="  ")).salesforce()
        assert config.account_name is None
        assert config.api_version == "59.0"

    def test_graph_token_url_defaults_to_tenant(self, make_settings):
        config = CredentialResolver(make_settings(ms_graph_token_url=None)).sharepoint()
        assert config.token_url == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
        assert config.seed_folders == ("", "General")
        assert "Annual EBC Review Notes.txt" in config.seed_files

    def test_gemini_config(self, make_settings):
        config = CredentialResolver(make_settings(gemini_api_key="g-key", gemini_max_retries=4)).gemini()
        assert config.api_key == "g-key"
        assert config.model == "gemini-2.0-flash"
        assert config.max_retries == 4


class TestEnvironment:
    """Settings are read from the environment, including the GRAPH_* aliases."""

    def test_graph_aliases(self, monkeypatch):
        monkeypatch.setenv("GRAPH_TENANT_ID", "t-env")
        monkeypatch.setenv("GRAPH_CLIENT_ID", "c-env")
        monkeypatch.setenv("GRAPH_CLIENT_SECRET", "s-env")
        settings = Settings(_env_file=None)

        assert settings.ms_tenant_id == "t-env"
        assert CredentialResolver(settings).missing_keys(SourceName.SHAREPOINT) == []

    def test_gemini_model_alias(self, monkeypatch):
        monkeypatch.setenv("GEMINI_TXI_MODEL", "gemini-1.5-pro")
        assert Settings(_env_file=None).gemini_model == "gemini-1.5-pro"
