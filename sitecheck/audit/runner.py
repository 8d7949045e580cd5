# sitecheck/audit/runner.py
import asyncio
import logging
import math
from typing import Iterable, List, Optional, Sequence

import httpx

from ..errors import ModuleError
from ..schemas import AuditIssue, AuditResult, ModuleKey, ModuleResult, Severity
from ..settings import Settings, get_settings
from .analyzer import analyze_page
from .fetcher import SiteSnapshot, fetch_site
from .modules import CheckContext
from .registry import CHECKS

logger = logging.getLogger(__name__)


# ============================================================
# Scoring
# ============================================================

def overall_score(scores: Sequence[int]) -> int:
    """Mean of module scores rounded half-up; 0 for no modules."""
    if not scores:
        return 0
    return int(math.floor(sum(scores) / len(scores) + 0.5))


def degraded_result(key: ModuleKey, error: BaseException) -> ModuleResult:
    return ModuleResult(
        module_key=key,
        score=0,
        issues=[AuditIssue(
            title=f"Error running {key.value} check",
            severity=Severity.LOW,
            technical_explanation=str(error),
            plain_language_explanation="An error occurred while checking this aspect of your site.",
            suggested_fix="Please try again or contact support.",
        )],
        summary="Unable to complete this check.",
    )


# ============================================================
# Module execution
# ============================================================

async def _run_one(key: ModuleKey, snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    try:
        return await CHECKS[key](snapshot, ctx)
    except Exception as e:
        err = ModuleError(key.value, e)
        logger.warning("%s", err, exc_info=True)
        return degraded_result(key, e)


def _dedupe(keys: Iterable[ModuleKey]) -> List[ModuleKey]:
    out: List[ModuleKey] = []
    for key in keys:
        key = ModuleKey(key)
        if key not in out:
            out.append(key)
    return out


async def run_modules(
    snapshot: SiteSnapshot, keys: Iterable[ModuleKey], ctx: CheckContext
) -> List[ModuleResult]:
    """Run every requested check concurrently; results come back in request order."""
    ordered = _dedupe(keys)
    return list(await asyncio.gather(*(_run_one(key, snapshot, ctx) for key in ordered)))


# ============================================================
# Entry point
# ============================================================

async def audit_site(
    url: str,
    keys: Iterable[ModuleKey],
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
    competitor_url: Optional[str] = None,
) -> AuditResult:
    """
    Fetch the page once, run the purchased checks against the snapshot and
    aggregate. Raises FetchError if the page itself cannot be retrieved.
    """
    settings = settings or get_settings()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(follow_redirects=True, timeout=None)
    try:
        snapshot = await fetch_site(url, client=client, settings=settings)
        ctx = CheckContext(client=client, settings=settings, competitor_url=competitor_url)
        results = await run_modules(snapshot, keys, ctx)
    finally:
        if owns_client:
            await client.aclose()

    score = overall_score([r.score for r in results])
    logger.info("Audited %s: %d modules, overall %d", url, len(results), score)
    return AuditResult(
        url=url,
        page_analysis=analyze_page(snapshot),
        modules=results,
        overall_score=score,
    )
