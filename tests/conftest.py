"""
Shared fixtures.

Nothing here touches the network: adapters get an ``httpx.MockTransport``
backed by ``FakeBackends``, which answers like ServiceNow, Salesforce and
Microsoft Graph would for a small canned dataset.
"""

import os
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Keep a developer's real secrets out of the test run
for _key in ("GEMINI_API_KEY", "SN_BASE_URL", "SF_USERNAME", "MS_TENANT_ID", "GRAPH_TENANT_ID"):
    os.environ.pop(_key, None)

from opsbrief.config import Settings
from opsbrief.models import (
    AggregatedSources,
    AtRiskPolicy,
    AtRiskSummary,
    CrmAccount,
    CrmOpportunity,
    CrmSnapshot,
    DocumentDigest,
    DocumentFile,
    IncidentSummary,
    PriorityCount,
    SourceName,
    SourceResult,
)
from opsbrief.services.credentials import CredentialResolver

TODAY = date(2025, 1, 10)

SN_HOST = "sn.example.com"
SF_LOGIN_HOST = "login.example.com"
SF_INSTANCE_HOST = "acme.my.salesforce.com"
TOKEN_HOST = "identity.example.com"
GRAPH_HOST = "graph.example.com"

SOAP_LOGIN_OK = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="urn:partner.soap.sforce.com">
  <soapenv:Body>
    <loginResponse>
      <result>
        <serverUrl>https://acme.my.salesforce.com/services/Soap/u/59.0/00D000000000001</serverUrl>
        <sessionId>00D!SESSION</sessionId>
      </result>
    </loginResponse>
  </soapenv:Body>
</soapenv:Envelope>"""

SOAP_LOGIN_FAULT = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/">
  <soapenv:Body>
    <soapenv:Fault>
      <faultcode>INVALID_LOGIN</faultcode>
      <faultstring>INVALID_LOGIN: Invalid username, password, security token; or user locked out.</faultstring>
    </soapenv:Fault>
  </soapenv:Body>
</soapenv:Envelope>"""


def _account_record() -> Dict[str, Any]:
    return {
        "attributes": {"type": "Account"},
        "Id": "001A",
        "Name": "Acme Corp",
        "Industry": "Manufacturing",
        "Rating": "Hot",
        "Type": "Customer",
        "AnnualRevenue": 5000000,
    }


def _opportunity_records() -> List[Dict[str, Any]]:
    return [
        {"Id": "006A", "Name": "Acme renewal", "StageName": "Negotiation", "Amount": 150000,
         "CloseDate": "2025-02-01", "Probability": 60},
        {"Id": "006B", "Name": "Acme expansion", "StageName": "Qualification", "Amount": 90000,
         "CloseDate": "2025-06-30", "Probability": 20},
        {"Id": "006C", "Name": "Acme platform", "StageName": "Proposal", "Amount": 500000,
         "CloseDate": "2025-09-30", "Probability": 75},
    ]


def drive_item(item_id: str, name: str, folder: bool = False) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "id": item_id,
        "name": name,
        "webUrl": f"https://tenant.sharepoint.com/sites/VationGTM/Shared%20Documents/{name}",
        "lastModifiedDateTime": "2025-01-09T10:00:00Z",
        "size": 120,
        "parentReference": {"driveId": "drive-1"},
    }
    item["folder" if folder else "file"] = {"childCount": 1} if folder else {}
    return item


class FakeBackends:
    """httpx handler answering like ServiceNow, Salesforce and Microsoft Graph."""

    def __init__(self):
        self.incident_summary: Dict[str, Any] = {
            "result": {
                "totalHighPriority": 78,
                "byPriority": [
                    {"priority": "1", "count": 72},
                    {"priority": 2, "count": 6},
                    {"priority": "3", "count": 40},
                ],
                "ebcIncidents": [{"number": "INC0010001", "short_description": "Billing outage"}],
                "generatedAt": "2025-01-10 08:00:00",
            }
        }
        self.named_accounts: List[Dict[str, Any]] = []
        self.hot_accounts: List[Dict[str, Any]] = [_account_record()]
        self.opportunities: List[Dict[str, Any]] = _opportunity_records()
        self.search_hits: List[Dict[str, Any]] = [drive_item("file-1", "IT_Operations_Weekly_Report.txt")]
        self.children: Dict[str, List[Dict[str, Any]]] = {}
        self.items_by_path: Dict[str, Dict[str, Any]] = {}
        self.contents: Dict[str, bytes] = {
            "file-1": b"Weekly ops: 3 P1 outages on billing. Owner: J. Smith. Deadline Friday.",
        }
        self.fail: set = set()
        self.requests: List[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def queries(self) -> List[str]:
        return [r.url.params["q"] for r in self.requests if r.url.host == SF_INSTANCE_HOST]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == SN_HOST:
            return self._servicenow(request)
        if host == SF_LOGIN_HOST:
            if "salesforce" in self.fail:
                return httpx.Response(500, text=SOAP_LOGIN_FAULT)
            return httpx.Response(200, text=SOAP_LOGIN_OK)
        if host == SF_INSTANCE_HOST:
            return self._salesforce_query(request)
        if host == TOKEN_HOST:
            if "graph" in self.fail:
                return httpx.Response(401, json={"error": "invalid_client", "error_description": "Bad client secret"})
            return httpx.Response(200, json={"access_token": "graph-token", "expires_in": 3599})
        if host == GRAPH_HOST:
            return self._graph(request)
        return httpx.Response(404, json={"error": {"message": "unknown host"}})

    def _servicenow(self, request: httpx.Request) -> httpx.Response:
        if "servicenow" in self.fail:
            return httpx.Response(503, json={"error": {"message": "Service Unavailable"}})
        return httpx.Response(200, json=self.incident_summary)

    def _salesforce_query(self, request: httpx.Request) -> httpx.Response:
        soql = request.url.params["q"]
        if "FROM Account" in soql:
            records = self.hot_accounts if "Rating =" in soql else self.named_accounts
        else:
            records = self.opportunities
        return httpx.Response(200, json={"totalSize": len(records), "done": True, "records": records})

    def _graph(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/sites"):
            return httpx.Response(200, json={"value": [
                {"id": "site-0", "name": "Archive", "displayName": "Archive"},
                {"id": "site-1", "name": "VationGTM", "displayName": "Vation GTM"},
            ]})
        if path.endswith("/drives"):
            return httpx.Response(200, json={"value": [
                {"id": "drive-0", "name": "Site Assets"},
                {"id": "drive-1", "name": "Documents"},
            ]})
        if "/root/search(" in path:
            return httpx.Response(200, json={"value": self.search_hits})
        if "/root:/" in path:
            item = self.items_by_path.get(path.split("/root:/", 1)[1])
            if item is None:
                return httpx.Response(404, json={"error": {"code": "itemNotFound", "message": "not found"}})
            return httpx.Response(200, json=item)
        if path.endswith("/children"):
            folder_id = path.split("/items/", 1)[1].split("/", 1)[0]
            return httpx.Response(200, json={"value": self.children.get(folder_id, [])})
        if path.endswith("/content"):
            item_id = path.split("/items/", 1)[1].split("/", 1)[0]
            if item_id not in self.contents:
                return httpx.Response(404, json={"error": {"message": "not found"}})
            return httpx.Response(200, content=self.contents[item_id])
        return httpx.Response(404, json={"error": {"message": "not found"}})


@pytest.fixture
def backends() -> FakeBackends:
    return FakeBackends()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings with every source configured; pass overrides to blank some out."""

    def factory(**overrides) -> Settings:
        values: Dict[str, Any] = {
            "sn_base_url": f"https://{SN_HOST}",
            "sn_user": "svc_brief",
            "sn_pass": "sn-secret",
            "sf_username": "brief@acme.example",
            "sf_password": "sf-secret",
            "sf_token": "sf-token",
            "sf_login_url": f"https://{SF_LOGIN_HOST}",
            "ms_tenant_id": "tenant-1",
            "ms_client_id": "client-1",
            "ms_client_secret": "graph-secret",
            "ms_graph_base_url": f"https://{GRAPH_HOST}/v1.0",
            "ms_graph_token_url": f"https://{TOKEN_HOST}/tenant-1/oauth2/v2.0/token",
            "gemini_api_key": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def resolver(make_settings) -> CredentialResolver:
    return CredentialResolver(make_settings())


# ---------------------------------------------------------------------------
# Payloads for brief/polish tests
# ---------------------------------------------------------------------------

@pytest.fixture
def incident_summary() -> IncidentSummary:
    return IncidentSummary(
        total_high_priority=78,
        by_priority=[
            PriorityCount(priority="1", count=72),
            PriorityCount(priority="2", count=6),
            PriorityCount(priority="3", count=40),
        ],
    )


@pytest.fixture
def crm_snapshot() -> CrmSnapshot:
    renewal = CrmOpportunity(id="006A", name="Acme renewal", amount=150000, close_date=date(2025, 2, 1),
                             probability=60, reasons=["closes in 22 days"])
    expansion = CrmOpportunity(id="006B", name="Acme expansion", amount=90000, close_date=date(2025, 6, 30),
                               probability=20, reasons=["probability 20% < 30%"])
    platform = CrmOpportunity(id="006C", name="Acme platform", amount=500000, close_date=date(2025, 9, 30),
                              probability=75)
    return CrmSnapshot(
        strategy="hot-rating",
        account=CrmAccount(id="001A", name="Acme Corp", industry="Manufacturing", rating="Hot"),
        open_opportunities=[renewal, expansion, platform],
        at_risk_opportunities=[renewal, expansion],
        at_risk_summary=AtRiskSummary(opportunity_count=2, total_amount=240000),
        policy=AtRiskPolicy(),
    )


@pytest.fixture
def document_digest() -> DocumentDigest:
    return DocumentDigest(
        site="Vation GTM",
        library="Documents",
        query="operational issues",
        files=[DocumentFile(id="file-1", name="IT_Operations_Weekly_Report.txt", extension="txt", chars=70)],
        summary="- Three P1 billing outages this week, owner J. Smith.\n- Deadline Friday.",
        signals_text="===== IT_Operations_Weekly_Report.txt =====\nWeekly ops: 3 P1 outages on billing.",
    )


@pytest.fixture
def make_sources(incident_summary, crm_snapshot, document_digest) -> Callable[..., AggregatedSources]:
    """AggregatedSources with each source ok (True) or failed with the given error string."""

    def factory(
        service_now: Any = True,
        salesforce: Any = True,
        share_point: Any = True,
        incidents: Optional[IncidentSummary] = None,
        crm: Optional[CrmSnapshot] = None,
    ) -> AggregatedSources:
        def result(source: SourceName, flag: Any, payload) -> SourceResult:
            if flag is True:
                return SourceResult.success(source, payload)
            error = flag if isinstance(flag, str) else f"TRANSPORT: {source.label} request timed out"
            return SourceResult.failure(source, error)

        return AggregatedSources(
            service_now=result(SourceName.SERVICENOW, service_now, incidents or incident_summary),
            salesforce=result(SourceName.SALESFORCE, salesforce, crm or crm_snapshot),
            share_point=result(SourceName.SHAREPOINT, share_point, document_digest),
        )

    return factory
