"""SharePoint document search and extraction via Microsoft Graph."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import httpx

from ..errors import LLMError, NoMatchError, ParseError, TransportError, UnreadableContentError
from ..models import DocumentDigest, DocumentFile, SourceName, SourceResult
from ..services.credentials import GraphConfig
from ..services.extraction_service import SUPPORTED_EXTS, extract_clipped, file_extension, is_supported
from .base import SourceAdapter, ensure_success, read_json
from .gemini import GeminiClient

logger = logging.getLogger("opsbrief.sharepoint")

ATTEMPT_SEARCH = "search"
ATTEMPT_SEEDED = "seeded"

# Plain excerpt length used when no LLM summary is available
EXCERPT_CHARS = 600

_STOPWORDS = {
    "the", "and", "for", "are", "what", "which", "who", "whom", "this", "that",
    "these", "those", "with", "from", "about", "into", "should", "could", "would",
    "can", "care", "today", "there", "their", "they", "them", "have", "has", "had",
    "was", "were", "been", "being", "does", "did", "our", "your", "you", "any",
    "all", "top", "tell", "show", "give", "please", "summarise", "summarize",
    "find", "search", "documents", "document", "files", "file", "related", "recent",
    "how", "why", "when", "where", "key", "main", "biggest", "its", "it's", "i",
}

_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")

DOCUMENT_SUMMARY_PROMPT = """You are an enterprise-safe assistant summarising SharePoint documents.

User question:
{question}

Documents (extracted text, possibly truncated):
{documents}

Rules:
- Focus only on these documents.
- If the text is very short or looks empty, say that clearly.
- Give a concise summary (5-8 bullet points).
- Call out any obvious risks, deadlines, or owners if visible.
- Do NOT invent data, contacts, or numbers.

Provide the summary now."""


def search_terms(question: str, max_terms: int = 6) -> str:
    """Keywords from a free-text question, stopwords removed, order kept."""
    seen = set()
    terms: List[str] = []
    for word in _WORD_RE.findall(question or ""):
        lowered = word.lower().strip(".-")
        if len(lowered) < 3 or lowered in _STOPWORDS or lowered in seen:
            continue
        seen.add(lowered)
        terms.append(word.strip(".-"))
        if len(terms) >= max_terms:
            break
    return " ".join(terms)


def _build_file(item: Dict[str, Any], drive_id: str) -> DocumentFile:
    """Normalize a Graph DriveItem (or search hit resource) into a DocumentFile."""
    parent_ref = item.get("parentReference") or {}
    name = str(item.get("name") or "")
    return DocumentFile(
        id=str(item.get("id") or ""),
        name=name,
        extension=file_extension(name).lstrip("."),
        drive_id=parent_ref.get("driveId") or drive_id,
        web_url=item.get("webUrl"),
        last_modified=item.get("lastModifiedDateTime"),
        size=item.get("size") if isinstance(item.get("size"), int) else None,
    )


def _is_folder(item: Dict[str, Any]) -> bool:
    return "folder" in item


def partition_supported(files: List[DocumentFile], max_files: int) -> Tuple[List[DocumentFile], List[DocumentFile]]:
    """De-duplicate by id; return (supported capped at max_files, unsupported)."""
    seen = set()
    supported: List[DocumentFile] = []
    unsupported: List[DocumentFile] = []
    for f in files:
        if not f.id or f.id in seen:
            continue
        seen.add(f.id)
        if is_supported(f.name):
            if len(supported) < max_files:
                supported.append(f)
        else:
            unsupported.append(f)
    return supported, unsupported


class GraphSession:
    """Client-credentials session against Microsoft Graph bound to one httpx client."""

    def __init__(self, client: httpx.AsyncClient, config: GraphConfig):
        self.client = client
        self.config = config
        self._token: Optional[str] = None

    async def acquire_token(self) -> str:
        token_payload = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "grant_type": "client_credentials",
            "scope": self.config.scope,
        }
        response = await self.client.post(self.config.token_url, data=token_payload)
        body = read_json(response, "Graph token request")
        self._token = body.get("access_token")
        if not self._token:
            raise ParseError("No access_token returned from Microsoft identity platform")
        return self._token

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            raise RuntimeError("Token not initialized - call acquire_token() first")
        return {"Authorization": f"Bearer {self._token}"}

    async def get_json(self, path: str, what: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await self.client.get(
            f"{self.config.base_url}{path}", headers=self._headers(), params=params
        )
        return read_json(response, what)

    async def find_site(self) -> Dict[str, Any]:
        name = self.config.site_name
        body = await self.get_json("/sites", "Graph site search", params={"search": name})
        sites = body.get("value") or []
        exact = [
            s for s in sites
            if name.lower() in (str(s.get("name") or "").lower(), str(s.get("displayName") or "").lower())
        ]
        best = (exact or sites or [None])[0]
        if not best or not best.get("id"):
            raise NoMatchError(f"No SharePoint site found for '{name}'")
        return best

    async def find_drive(self, site_id: str) -> Dict[str, Any]:
        name = self.config.library_name
        body = await self.get_json(f"/sites/{site_id}/drives", "Graph drive listing")
        drives = body.get("value") or []
        match = [d for d in drives if str(d.get("name") or "").lower() == name.lower()]
        best = (match or drives or [None])[0]
        if not best or not best.get("id"):
            raise NoMatchError(f"No document library '{name}' on site")
        return best

    async def search(self, drive_id: str, query: str, size: int) -> List[Dict[str, Any]]:
        escaped = query.replace("'", "''")
        body = await self.get_json(
            f"/drives/{drive_id}/root/search(q='{escaped}')",
            "Graph drive search",
            params={"$top": str(size)},
        )
        return list(body.get("value") or [])[:size]

    async def children(self, drive_id: str, item_id: str) -> List[Dict[str, Any]]:
        body = await self.get_json(f"/drives/{drive_id}/items/{item_id}/children", "Graph folder listing")
        return list(body.get("value") or [])

    async def item_by_path(self, drive_id: str, path: str) -> Optional[Dict[str, Any]]:
        response = await self.client.get(
            f"{self.config.base_url}/drives/{drive_id}/root:/{quote(path, safe='/')}",
            headers=self._headers(),
        )
        if response.status_code == 404:
            return None
        item = read_json(response, "Graph item lookup")
        return item if item.get("id") else None

    async def download(self, file: DocumentFile) -> bytes:
        if not file.drive_id or not file.id:
            raise TransportError(f"Missing driveId or itemId for {file.name}")
        response = await self.client.get(
            f"{self.config.base_url}/drives/{file.drive_id}/items/{file.id}/content",
            headers=self._headers(),
        )
        ensure_success(response, f"Download of {file.name}")
        return response.content


class SharePointAdapter(SourceAdapter):
    """
    Find documents relevant to a question and summarise them.

    Steps: token -> site -> library -> keyword search (folders expanded one
    level) -> supported-extension filter -> download -> extract -> LLM summary.
    When the search yields nothing usable, the configured seed files are
    looked up by path instead. With ``seeded_only`` the search is skipped and
    no summary is requested.
    """

    SOURCE = SourceName.SHAREPOINT

    def __init__(self, *args, llm: Optional[GeminiClient] = None, seeded_only: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.llm = llm
        self.seeded_only = seeded_only

    def resolve_config(self) -> Union[GraphConfig, SourceResult]:
        return self.resolver.sharepoint()

    async def _fetch(self, config: GraphConfig, question: Optional[str]) -> DocumentDigest:
        async with self._client(follow_redirects=True) as client:
            session = GraphSession(client, config)
            await session.acquire_token()
            site = await session.find_site()
            drive = await session.find_drive(site["id"])
            site_name = str(site.get("displayName") or site.get("name") or config.site_name)
            library = str(drive.get("name") or config.library_name)

            query = "" if self.seeded_only else search_terms(question or "")
            chosen, unsupported, attempt = await self._choose_files(session, drive["id"], query)
            if not chosen:
                if unsupported:
                    exts = sorted({f".{f.extension}" if f.extension else "(none)" for f in unsupported})
                    raise UnreadableContentError(
                        f"Found {len(unsupported)} file(s) in {site_name}/{library} but none in a "
                        f"supported format (found {', '.join(exts)}; allowed {', '.join(sorted(SUPPORTED_EXTS))})"
                    )
                raise NoMatchError(
                    f"No files in {site_name}/{library} matched "
                    + (f"'{query}' or the seeded file list" if query else "the seeded file list")
                )

            outcomes = await asyncio.gather(
                *(self._read(session, f, config.max_chars) for f in chosen),
                return_exceptions=True,
            )

        extracted: List[Tuple[DocumentFile, str]] = []
        failures: List[BaseException] = []
        for file, outcome in zip(chosen, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("SharePoint download skipped: %s (%s)", file.name, outcome)
                failures.append(outcome)
            else:
                extracted.append(outcome)
        if not extracted:
            raise failures[0]

        readable = [(f, text) for f, text in extracted if text.strip()]
        files = [f for f, _ in extracted]
        if not readable:
            raise UnreadableContentError(
                f"Found {len(files)} file(s) but text extraction returned nothing readable "
                "(empty, scanned or image-only documents)"
            )

        signals_text = "\n\n".join(f"===== {f.name} =====\n{text}" for f, text in readable)
        digest = DocumentDigest(
            site=site_name,
            library=library,
            query=query,
            attempt=attempt,
            files=files,
            signals_text=signals_text,
        )
        if self.seeded_only:
            return digest
        excerpt = "\n\n".join(f"{f.name}: {text[:EXCERPT_CHARS]}" for f, text in readable)
        update = {"summary": excerpt}
        if self.llm is None:
            update["summary_error"] = "GEMINI_API_KEY not configured; showing document excerpts"
        return digest.model_copy(update=update)

    async def _complete(self, digest: DocumentDigest, question: Optional[str], remaining: float) -> DocumentDigest:
        """Replace the excerpt with an LLM summary if one arrives within the remaining budget."""
        if self.seeded_only or self.llm is None:
            return digest

        prompt = DOCUMENT_SUMMARY_PROMPT.format(
            question=question or "Summarise key operational risks, escalations, deadlines and commitments.",
            documents=digest.signals_text,
        )
        try:
            summary = await asyncio.wait_for(self.llm.generate(prompt), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning("SharePoint summary timed out after %.1fs; keeping excerpts", remaining)
            return digest.model_copy(update={"summary_error": "Gemini summary timed out; showing document excerpts"})
        except LLMError as e:
            logger.warning("SharePoint summary fell back to excerpts: %s", e)
            return digest.model_copy(update={"summary_error": str(e)})
        return digest.model_copy(update={"summary": summary, "summary_model": self.llm.model})

    async def _choose_files(
        self, session: GraphSession, drive_id: str, query: str
    ) -> Tuple[List[DocumentFile], List[DocumentFile], str]:
        max_files = session.config.max_files
        unsupported: List[DocumentFile] = []

        if query:
            found = await self._search_files(session, drive_id, query)
            chosen, unsupported = partition_supported(found, max_files)
            logger.info(
                "SharePoint search: %d hit(s), %d supported, %d unsupported",
                len(found), len(chosen), len(unsupported),
            )
            if chosen:
                return chosen, unsupported, ATTEMPT_SEARCH

        seeded = await self._seeded_files(session, drive_id)
        chosen, seeded_unsupported = partition_supported(seeded, max_files)
        logger.info("SharePoint seeded lookup: %d file(s) found", len(seeded))
        return chosen, unsupported + seeded_unsupported, ATTEMPT_SEEDED

    async def _search_files(self, session: GraphSession, drive_id: str, query: str) -> List[DocumentFile]:
        files: List[DocumentFile] = []
        for hit in await session.search(drive_id, query, session.config.search_size):
            if _is_folder(hit):
                # One level only
                for child in await session.children(drive_id, str(hit.get("id") or "")):
                    if not _is_folder(child):
                        files.append(_build_file(child, drive_id))
            else:
                files.append(_build_file(hit, drive_id))
        return files

    async def _seeded_files(self, session: GraphSession, drive_id: str) -> List[DocumentFile]:
        files: List[DocumentFile] = []
        for name in session.config.seed_files:
            for folder in session.config.seed_folders:
                path = f"{folder.strip('/')}/{name}".strip("/")
                item = await session.item_by_path(drive_id, path)
                if item and not _is_folder(item):
                    files.append(_build_file(item, drive_id))
                    break
        return files

    async def _read(self, session: GraphSession, file: DocumentFile, max_chars: int) -> Tuple[DocumentFile, str]:
        data = await session.download(file)
        text, truncated, method = await asyncio.to_thread(extract_clipped, data, file.name, max_chars)
        logger.info("SharePoint file read: ext=%s method=%s chars=%d", file.extension, method, len(text))
        return file.model_copy(update={"chars": len(text), "truncated": truncated}), text
