import asyncio
import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from ...schemas import ModuleKey, ModuleResult, Severity
from ...utils.urls import is_skippable, same_site, site_root
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings

logger = logging.getLogger(__name__)

SUMMARIES = (
    "Search engines should be able to find your pages easily. Make sure you have a sitemap.xml file.",
    "Your crawl health needs improvement. Create a sitemap.xml file to help search engines find all your pages.",
    "Your crawl health needs work. Start by creating a sitemap.xml file and checking your robots.txt file.",
)

# "Disallow: /" on its own line; "Disallow: /api/" does not match
BLOCK_ALL = re.compile(r"^\s*disallow:\s*/\s*$", re.IGNORECASE | re.MULTILINE)
# 405: HEAD not supported, 429: throttled. Neither means the page is gone.
NOT_BROKEN_STATUSES = (405, 429)
MIN_INTERNAL_LINKS = 3

ROBOTS_FIX = "Create a robots.txt file in your website root. For most sites, you can use: User-agent: *\nAllow: /"
SITEMAP_FIX = (
    "Create a sitemap.xml file and place it in your website root. "
    "Many website builders create this automatically."
)


async def _get_text(ctx: CheckContext, url: str) -> Tuple[Optional[int], Optional[str]]:
    """(status, body) or (None, None) when the request errored or timed out."""
    try:
        resp = await asyncio.wait_for(
            ctx.client.get(
                url,
                headers={"User-Agent": ctx.settings.USER_AGENT},
                follow_redirects=True,
                timeout=ctx.settings.CRAWL_FILE_TIMEOUT,
            ),
            ctx.settings.CRAWL_FILE_TIMEOUT,
        )
    except (asyncio.TimeoutError, httpx.HTTPError) as e:
        logger.info("Could not fetch %s: %r", url, e)
        return None, None
    return resp.status_code, resp.text


def count_sitemap_urls(xml: str) -> int:
    soup = BeautifulSoup(xml or "", "xml")
    return len(soup.find_all("loc"))


def collect_links(snapshot: SiteSnapshot) -> Tuple[List[str], int]:
    """(resolved, de-duplicated link URLs in page order, internal link count)"""
    base = urlparse(snapshot.final_url)
    seen = set()
    links: List[str] = []
    internal = 0
    for a in snapshot.document.find_all("a", href=True):
        href = a["href"].strip()
        if is_skippable(href):
            continue
        absolute = urljoin(snapshot.final_url, href)
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            continue
        if same_site(parsed.netloc, base.netloc):
            internal += 1
        absolute = absolute.split("#", 1)[0]
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links, internal


async def _is_broken(ctx: CheckContext, url: str) -> bool:
    try:
        resp = await asyncio.wait_for(
            ctx.client.head(
                url,
                headers={"User-Agent": ctx.settings.USER_AGENT},
                follow_redirects=True,
                timeout=ctx.settings.LINK_CHECK_TIMEOUT,
            ),
            ctx.settings.LINK_CHECK_TIMEOUT,
        )
    except (asyncio.TimeoutError, httpx.HTTPError):
        return True
    return not resp.is_success and resp.status_code not in NOT_BROKEN_STATUSES


async def check_crawl_health(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.CRAWL_HEALTH)

    # robots.txt first, then the sitemap
    robots_status, robots_body = await _get_text(ctx, site_root(snapshot.final_url, "/robots.txt"))
    robots_ok = robots_status is not None and 200 <= robots_status < 300
    if not robots_ok:
        f.add(
            "Robots.txt file not found",
            Severity.LOW,
            "robots.txt not accessible" if robots_status else "Could not access robots.txt",
            "A robots.txt file tells search engines which pages they can and cannot access.",
            ROBOTS_FIX,
            penalty=10,
            evidence={"actual": f"HTTP {robots_status}" if robots_status else "request failed"},
        )
    elif BLOCK_ALL.search(robots_body or ""):
        f.add(
            "Robots.txt may be blocking search engines",
            Severity.HIGH,
            'robots.txt contains "Disallow: /" which blocks all pages',
            "Your robots.txt file might be preventing search engines from finding your pages.",
            "Check your robots.txt file and make sure it's not blocking all pages. "
            'Remove "Disallow: /" unless you want to block search engines.',
            penalty=30,
            evidence={
                "found": (robots_body or "")[:500],
                "actual": 'Contains "Disallow: /" which blocks all pages',
                "expected": 'Should allow search engines to crawl pages (e.g., "User-agent: *\nAllow: /")',
            },
        )

    sitemap_status, sitemap_body = await _get_text(ctx, site_root(snapshot.final_url, "/sitemap.xml"))
    sitemap_ok = sitemap_status is not None and 200 <= sitemap_status < 300
    sitemap_urls = count_sitemap_urls(sitemap_body) if sitemap_ok else 0
    if not sitemap_ok:
        f.add(
            "Sitemap file not found",
            Severity.HIGH,
            "sitemap.xml not accessible" if sitemap_status else "Could not access sitemap.xml",
            "A sitemap helps search engines find all your pages.",
            SITEMAP_FIX,
            penalty=25,
        )

    links, internal = collect_links(snapshot)
    if internal < MIN_INTERNAL_LINKS:
        f.add(
            "Few internal links found",
            Severity.LOW,
            f"Only {internal} internal links detected",
            "Internal links help search engines discover all your pages.",
            "Add links between your pages. Link from your homepage to important pages, "
            "and from those pages back to your homepage.",
            penalty=5,
            evidence={
                "found": f"{internal} internal links",
                "expected": "At least 1-2 internal links per page" if internal == 0
                else "Consider adding more internal links (3+ recommended)",
            },
        )

    sample = links[: ctx.settings.LINK_SAMPLE_SIZE]
    verdicts = await asyncio.gather(*(_is_broken(ctx, url) for url in sample))
    broken = [url for url, bad in zip(sample, verdicts) if bad]
    if broken:
        n = len(broken)
        f.add(
            f"{n} broken link{'s' if n > 1 else ''} found",
            Severity.HIGH if n > 3 else Severity.MEDIUM,
            f"Found {n} links that return errors",
            "Broken links frustrate visitors and hurt your site's reputation. "
            "Visitors clicking broken links will see error pages.",
            "Fix or remove the broken links. Check each link to make sure it goes to a working page.",
            penalty=min(20, n * 5),
            evidence={
                "found": broken,
                "actual": f"{n} broken links",
                "expected": "All links should work",
                "count": n,
            },
        )

    return f.result(SUMMARIES, evidence={
        "robotsTxtFound": robots_ok,
        "robotsTxtContent": (robots_body or "")[:2000] if robots_ok else None,
        "sitemapExists": sitemap_ok,
        "sitemapUrlCount": sitemap_urls if sitemap_ok else None,
        "internalLinksCount": internal,
        "totalLinksChecked": len(sample),
        "brokenLinksCount": len(broken),
    })
