"""
Salesforce adapter: SOAP login, then SOQL over the REST query API.

Flow:
    1. ``login`` with username and password+security token -> session id and
       instance URL
    2. Find the target account by trying named strategies in order
       (``named-account`` then ``hot-rating``); the first non-empty result wins
    3. Pull that account's open opportunities and flag the at-risk subset with
       the configured ``AtRiskPolicy``
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit
from xml.sax.saxutils import escape

import httpx

from ..errors import NoMatchError, ParseError, TransportError
from ..models import (
    AtRiskPolicy,
    AtRiskSummary,
    CrmAccount,
    CrmOpportunity,
    CrmSnapshot,
    SourceName,
    SourceResult,
)
from ..services.credentials import SalesforceConfig
from .base import SourceAdapter, read_json

logger = logging.getLogger("opsbrief.salesforce")

_LOGIN_ENVELOPE = """<?xml version="1.0" encoding="utf-8" ?>
<env:Envelope xmlns:xsd="http://www.w3.org/2001/XMLSchema"
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"
    xmlns:urn="urn:partner.soap.sforce.com">
  <env:Body>
    <urn:login>
      <urn:username>{username}</urn:username>
      <urn:password>{password}</urn:password>
    </urn:login>
  </env:Body>
</env:Envelope>"""

ACCOUNT_FIELDS = "Id, Name, Industry, Rating, Type, AnnualRevenue"
OPPORTUNITY_FIELDS = "Id, Name, StageName, Amount, CloseDate, Probability"


def soql_quote(value: str) -> str:
    """Quote a SOQL string literal, escaping backslashes and single quotes."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


@dataclass(frozen=True)
class AccountStrategy:
    """One way of locating the target account."""

    name: str
    where: str

    def soql(self) -> str:
        return (
            f"SELECT {ACCOUNT_FIELDS} FROM Account WHERE {self.where} "
            "ORDER BY AnnualRevenue DESC NULLS LAST LIMIT 1"
        )


def account_strategies(config: SalesforceConfig) -> List[AccountStrategy]:
    strategies: List[AccountStrategy] = []
    if config.account_name:
        strategies.append(AccountStrategy("named-account", f"Name = {soql_quote(config.account_name)}"))
    strategies.append(AccountStrategy("hot-rating", f"Rating = {soql_quote(config.hot_rating)}"))
    return strategies


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_login_response(xml_text: str) -> Tuple[str, str]:
    """
    Extract ``(session_id, instance_url)`` from a SOAP login response.

    Raises:
        TransportError: the envelope carries a SOAP fault (bad credentials, locked user)
        ParseError: the body is not XML or lacks the session fields
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ParseError("Salesforce login returned non-XML") from e

    found: Dict[str, str] = {}
    for element in root.iter():
        name = _local_name(element.tag)
        if name in ("sessionId", "serverUrl", "faultstring", "faultcode") and element.text:
            found.setdefault(name, element.text.strip())

    if "faultstring" in found or "faultcode" in found:
        raise TransportError(f"Salesforce login rejected: {found.get('faultstring') or found['faultcode']}")
    if "sessionId" not in found or "serverUrl" not in found:
        raise ParseError("Salesforce login response missing sessionId/serverUrl")

    parts = urlsplit(found["serverUrl"])
    return found["sessionId"], f"{parts.scheme}://{parts.netloc}"


def _account_from_record(record: Dict[str, Any]) -> CrmAccount:
    return CrmAccount(
        id=record.get("Id") or "",
        name=record.get("Name") or "",
        industry=record.get("Industry"),
        rating=record.get("Rating"),
        type=record.get("Type"),
        annual_revenue=record.get("AnnualRevenue"),
    )


def _opportunity_from_record(record: Dict[str, Any]) -> CrmOpportunity:
    return CrmOpportunity(
        id=record.get("Id") or "",
        name=record.get("Name") or "",
        stage_name=record.get("StageName"),
        amount=float(record.get("Amount") or 0),
        close_date=record.get("CloseDate"),
        probability=record.get("Probability"),
    )


def flag_at_risk(
    opportunities: List[CrmOpportunity],
    policy: AtRiskPolicy,
    today: date,
) -> Tuple[List[CrmOpportunity], AtRiskSummary]:
    """Return the at-risk subset (with reasons filled in) and its totals."""
    at_risk: List[CrmOpportunity] = []
    for opp in opportunities:
        reasons = policy.reasons(opp, today)
        if reasons:
            at_risk.append(opp.model_copy(update={"reasons": reasons}))
    summary = AtRiskSummary(
        opportunity_count=len(at_risk),
        total_amount=sum(o.amount for o in at_risk),
    )
    return at_risk, summary


class SalesforceSession:
    """Logged-in Salesforce session bound to one httpx client."""

    def __init__(self, client: httpx.AsyncClient, config: SalesforceConfig):
        self.client = client
        self.config = config
        self.session_id: Optional[str] = None
        self.instance_url: Optional[str] = None

    async def login(self) -> None:
        url = f"{self.config.login_url}/services/Soap/u/{self.config.api_version}"
        body = _LOGIN_ENVELOPE.format(
            username=escape(self.config.username),
            password=escape(self.config.password + self.config.security_token),
        )
        response = await self.client.post(
            url,
            content=body.encode("utf-8"),
            headers={"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": "login"},
        )
        # Faults come back as HTTP 500 with a SOAP body; parse before checking status
        if response.is_success or "Fault" in response.text:
            self.session_id, self.instance_url = parse_login_response(response.text)
        else:
            raise TransportError(
                f"Salesforce login failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.info("Salesforce login ok (instance=%s)", self.instance_url)

    async def query(self, soql: str) -> List[Dict[str, Any]]:
        if not self.session_id:
            raise RuntimeError("Salesforce session not initialized - call login() first")
        response = await self.client.get(
            f"{self.instance_url}/services/data/v{self.config.api_version}/query",
            params={"q": soql},
            headers={"Authorization": f"Bearer {self.session_id}", "Accept": "application/json"},
        )
        body = read_json(response, "Salesforce query")
        records = body.get("records")
        if not isinstance(records, list):
            raise ParseError("Salesforce query response missing records")
        return records


class SalesforceAdapter(SourceAdapter):
    """Target account, open deals and the at-risk subset from Salesforce."""

    SOURCE = SourceName.SALESFORCE

    def __init__(self, *args, today: Optional[Callable[[], date]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._today = today or date.today

    def resolve_config(self) -> Union[SalesforceConfig, SourceResult]:
        return self.resolver.salesforce()

    @staticmethod
    def policy_for(config: SalesforceConfig) -> AtRiskPolicy:
        return AtRiskPolicy(
            probability_below=config.at_risk_probability,
            close_within_days=config.at_risk_close_days,
        )

    async def _find_account(self, session: SalesforceSession) -> Tuple[str, CrmAccount]:
        tried: List[str] = []
        for strategy in account_strategies(session.config):
            records = await session.query(strategy.soql())
            tried.append(strategy.name)
            if records:
                logger.info("Salesforce account located via %s strategy", strategy.name)
                return strategy.name, _account_from_record(records[0])
            logger.info("Salesforce %s strategy returned no account", strategy.name)
        raise NoMatchError(f"No Salesforce account matched (tried {', '.join(tried)})")

    async def _fetch(self, config: SalesforceConfig, question: Optional[str]) -> CrmSnapshot:
        async with self._client() as client:
            session = SalesforceSession(client, config)
            await session.login()
            strategy, account = await self._find_account(session)
            records = await session.query(
                f"SELECT {OPPORTUNITY_FIELDS} FROM Opportunity "
                f"WHERE AccountId = {soql_quote(account.id)} AND IsClosed = false "
                f"ORDER BY CloseDate ASC LIMIT {int(config.opportunity_limit)}"
            )

        opportunities = [_opportunity_from_record(r) for r in records]
        policy = self.policy_for(config)
        at_risk, summary = flag_at_risk(opportunities, policy, self._today())
        logger.debug(
            "Salesforce snapshot: account=%s open=%d at_risk=%d",
            account.name,
            len(opportunities),
            summary.opportunity_count,
        )
        return CrmSnapshot(
            strategy=strategy,
            account=account,
            open_opportunities=opportunities,
            at_risk_opportunities=at_risk,
            at_risk_summary=summary,
            policy=policy,
        )
