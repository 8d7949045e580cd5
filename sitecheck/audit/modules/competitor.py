import logging
from typing import Optional, Tuple

from ...errors import FetchError
from ...schemas import ModuleKey, ModuleResult, Severity
from ...utils.urls import domain_of
from ..fetcher import SiteSnapshot, fetch_site
from .base import CheckContext, Findings
from .on_page import DESCRIPTION_TARGET, TITLE_TARGET

logger = logging.getLogger(__name__)

SUMMARIES = (
    "Focus on creating unique, helpful content that sets you apart from competitors.",
    "Research your competitors and identify opportunities to improve your content and online presence.",
    "Your site needs more content to compete effectively. Research competitors and create more detailed, helpful content.",
)

THIN_CONTENT_WORDS = 500
CONTENT_RATIO = 1.5
CONTENT_MIN_GAP = 200


def length_gap(length: int, target: Tuple[int, int]) -> int:
    """Characters outside the target range; 0 inside it. A missing value counts as maximally bad."""
    lo, hi = target
    if length == 0:
        return 10_000
    if length < lo:
        return lo - length
    if length > hi:
        return length - hi
    return 0


async def _fetch_competitor(url: str, ctx: CheckContext) -> Optional[SiteSnapshot]:
    try:
        return await fetch_site(
            url,
            client=ctx.client,
            timeout=ctx.settings.COMPETITOR_TIMEOUT,
            user_agent=ctx.settings.BROWSER_USER_AGENT,
            settings=ctx.settings,
        )
    except FetchError as e:
        logger.info("Competitor %s unavailable: %s", url, e)
        return None


async def check_competitor(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.COMPETITOR_OVERVIEW)
    words = snapshot.word_count
    rival = await _fetch_competitor(ctx.competitor_url, ctx) if ctx.competitor_url else None

    if rival is None:
        f.add(
            "Monitor your top competitors",
            Severity.LOW,
            "No reachable competitor site to compare against",
            "Understanding what your competitors do well can help you improve your own site.",
            "Research 3-5 businesses similar to yours. Check their websites, see what content they have, "
            "and note what they do well. Look for businesses in your area or industry that rank well in search results.",
            penalty=25,
            evidence={"found": ctx.competitor_url},
        )
        if words < THIN_CONTENT_WORDS:
            f.add(
                "Your site may need more content than competitors",
                Severity.MEDIUM,
                f"Site has only {words} words",
                "Competitors with more detailed content often rank better in search results.",
                "Add more helpful content to your pages. Aim for at least 500-1000 words per main page "
                "with useful information about your business.",
                penalty=15,
                evidence={"count": words},
            )
    else:
        theirs = rival.word_count
        if theirs > words * CONTENT_RATIO and theirs - words >= CONTENT_MIN_GAP:
            f.add(
                "Your competitor has much more content",
                Severity.MEDIUM,
                f"Competitor page has {theirs} words versus your {words}",
                "Competitors with more detailed content often rank better in search results.",
                "Expand your page with useful details your customers look for: services, prices, FAQs and examples.",
                penalty=15,
                evidence={"actual": words, "expected": theirs},
            )
        if length_gap(len(snapshot.title), TITLE_TARGET) > length_gap(len(rival.title), TITLE_TARGET):
            f.add(
                "Your competitor has a stronger page title",
                Severity.LOW,
                f"Title length {len(snapshot.title)} vs competitor {len(rival.title)} (target 50-60)",
                "A well-sized title helps your listing stand out next to competitors in search results.",
                "Rewrite your title to 50-60 characters and include what you offer and where.",
                penalty=5,
                evidence={"found": snapshot.title, "expected": rival.title},
            )
        if length_gap(len(snapshot.meta_description), DESCRIPTION_TARGET) > \
                length_gap(len(rival.meta_description), DESCRIPTION_TARGET):
            f.add(
                "Your competitor has a stronger page description",
                Severity.LOW,
                f"Description length {len(snapshot.meta_description)} vs competitor "
                f"{len(rival.meta_description)} (target 120-160)",
                "The description is your sales pitch in search results. A better one wins the click.",
                "Write a 120-160 character description that explains what you offer and why to choose you.",
                penalty=5,
            )

    f.add(
        "Keep your content fresh and updated",
        Severity.LOW,
        "Content freshness is important for SEO",
        "Competitors who regularly update their content tend to rank better.",
        "Update your website content regularly. Add new pages, update existing content, and keep information current. "
        "Aim to add or update content at least once a month.",
    )

    return f.result(SUMMARIES, evidence={
        "competitorUrl": ctx.competitor_url,
        "competitorDomain": domain_of(rival.final_url) if rival else None,
        "comparisonAvailable": rival is not None,
        "wordCount": words,
        "competitorWordCount": rival.word_count if rival else None,
        "titleLength": len(snapshot.title),
        "competitorTitleLength": len(rival.title) if rival else None,
        "metaDescriptionLength": len(snapshot.meta_description),
        "competitorMetaDescriptionLength": len(rival.meta_description) if rival else None,
    })
