# sitecheck/audit/fetcher.py
import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx
from bs4 import BeautifulSoup, Comment

from ..errors import FetchError
from ..settings import Settings, get_settings
from ..utils.urls import normalize_url

logger = logging.getLogger(__name__)

NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]
_WS = re.compile(r"\s+")


@dataclass(frozen=True)
class JsonLdScan:
    """Every node found across the page's JSON-LD blocks, @graph and arrays flattened."""
    blocks: int
    invalid: int
    nodes: Tuple[Dict[str, Any], ...]

    def types(self) -> List[str]:
        out: List[str] = []
        for node in self.nodes:
            out.extend(node_types(node))
        return out


def node_types(node: Mapping[str, Any]) -> List[str]:
    raw = node.get("@type")
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list):
        return [t for t in raw if isinstance(t, str)]
    return []


def _flatten_json_ld(value: Any, out: List[Dict[str, Any]]) -> None:
    if isinstance(value, list):
        for item in value:
            _flatten_json_ld(item, out)
    elif isinstance(value, dict):
        graph = value.get("@graph")
        if "@type" in value or not graph:
            out.append(value)
        if graph:
            _flatten_json_ld(graph, out)


@dataclass(frozen=True, eq=False)
class SiteSnapshot:
    """
    Immutable parsed view of one fetched page. Shared read-only by every
    check module in a run; derived values are computed lazily and cached.
    """
    url: str
    final_url: str
    http_status: int
    content_type: str
    content_length: int
    is_https: bool
    title: str
    meta_description: str
    html: str
    headers: Mapping[str, str] = field(repr=False)
    document: BeautifulSoup = field(repr=False)

    @property
    def has_redirect(self) -> bool:
        return self.final_url.rstrip("/") != self.url.rstrip("/")

    def meta(self, name: str) -> Optional[str]:
        """Content of <meta name=...> or <meta property=...>, stripped; None if absent/empty."""
        tag = self.document.find("meta", attrs={"name": name}) or \
            self.document.find("meta", attrs={"property": name})
        if not tag:
            return None
        content = (tag.get("content") or "").strip()
        return content or None

    @cached_property
    def body_text(self) -> str:
        root = self.document.body or self.document
        parts = []
        for text in root.find_all(string=True):
            if isinstance(text, Comment):
                continue
            if text.find_parent(NON_CONTENT_TAGS) is not None:
                continue
            parts.append(str(text))
        return _WS.sub(" ", " ".join(parts)).strip()

    @cached_property
    def word_count(self) -> int:
        return len(self.body_text.split()) if self.body_text else 0

    @cached_property
    def json_ld(self) -> JsonLdScan:
        blocks = self.document.find_all("script", attrs={"type": "application/ld+json"})
        nodes: List[Dict[str, Any]] = []
        invalid = 0
        for block in blocks:
            raw = (block.string or block.get_text() or "").strip()
            if not raw:
                invalid += 1
                continue
            try:
                _flatten_json_ld(json.loads(raw), nodes)
            except ValueError:
                invalid += 1
        return JsonLdScan(blocks=len(blocks), invalid=invalid, nodes=tuple(nodes))


def build_snapshot(
    url: str,
    html: str,
    *,
    final_url: Optional[str] = None,
    http_status: int = 200,
    headers: Optional[Mapping[str, str]] = None,
    content_length: Optional[int] = None,
) -> SiteSnapshot:
    final_url = final_url or url
    lowered = {k.lower(): v for k, v in (headers or {}).items()}
    document = BeautifulSoup(html or "", "lxml")

    title_tag = document.find("title")
    title = title_tag.get_text().strip() if title_tag else ""

    description = ""
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = document.find("meta", attrs=attrs)
        if tag and (tag.get("content") or "").strip():
            description = tag["content"].strip()
            break

    content_type = (lowered.get("content-type") or "").split(";")[0].strip() or "unknown"
    if content_length is None:
        try:
            content_length = int(lowered.get("content-length") or 0)
        except ValueError:
            content_length = 0
        content_length = content_length or len((html or "").encode("utf-8"))

    return SiteSnapshot(
        url=url,
        final_url=final_url,
        http_status=http_status,
        content_type=content_type,
        content_length=content_length,
        is_https=final_url.startswith("https://") or url.startswith("https://"),
        title=title,
        meta_description=description,
        html=html or "",
        headers=MappingProxyType(lowered),
        document=document,
    )


async def fetch_site(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> SiteSnapshot:
    """
    GET one page (redirects followed) and parse it into a SiteSnapshot.
    Raises FetchError on timeout, network failure or a non-2xx status.
    """
    try:
        url = normalize_url(url)
    except ValueError as e:
        raise FetchError(str(e), url=url) from e

    settings = settings or get_settings()
    timeout = settings.FETCH_TIMEOUT if timeout is None else timeout
    headers = {
        "User-Agent": user_agent or settings.USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(follow_redirects=True, timeout=None)
    try:
        try:
            resp = await asyncio.wait_for(
                client.get(url, headers=headers, follow_redirects=True, timeout=timeout), timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FetchError(
                f"Request timeout: {url} took longer than {timeout:g} seconds to respond", url=url
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e
    finally:
        if owns_client:
            await client.aclose()

    if not resp.is_success:
        raise FetchError(f"HTTP {resp.status_code}", url=url, status_code=resp.status_code)

    logger.debug("Fetched %s -> %s (%s bytes)", url, resp.url, len(resp.content))
    return build_snapshot(
        url,
        resp.text,
        final_url=str(resp.url),
        http_status=resp.status_code,
        headers=dict(resp.headers),
    )
