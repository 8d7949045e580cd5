from typing import List
from urllib.parse import urlparse

from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings

SUMMARIES = (
    "Your social sharing is well configured. Your links will look great when shared!",
    "Your social sharing needs some improvement. Add Open Graph tags for better Facebook sharing.",
    "Your social sharing needs work. Add Open Graph and Twitter Card tags to improve how your site looks when shared.",
)

SOCIAL_HOSTS = (
    "facebook.com", "instagram.com", "twitter.com", "x.com", "linkedin.com",
    "youtube.com", "tiktok.com", "pinterest.com",
)


def _social_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in SOCIAL_HOSTS)


def social_profiles(snapshot: SiteSnapshot) -> List[str]:
    found = []
    for a in snapshot.document.find_all("a", href=True):
        href = a["href"].strip()
        if _social_host(href) and href not in found:
            found.append(href)
    for node in snapshot.json_ld.nodes:
        same_as = node.get("sameAs") or []
        if isinstance(same_as, str):
            same_as = [same_as]
        for url in same_as:
            if isinstance(url, str) and _social_host(url) and url not in found:
                found.append(url)
    return found


async def check_social(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.SOCIAL)

    og_title = snapshot.meta("og:title")
    og_description = snapshot.meta("og:description")
    og_image = snapshot.meta("og:image")
    twitter_card = snapshot.meta("twitter:card")
    twitter_title = snapshot.meta("twitter:title")

    if not og_title:
        f.add(
            "Missing Facebook sharing title",
            Severity.MEDIUM,
            "No og:title meta tag found",
            "When someone shares your site on Facebook, it needs a title to display.",
            'Add: <meta property="og:title" content="Your Page Title">',
            penalty=10,
        )
    if not og_description:
        f.add(
            "Missing Facebook sharing description",
            Severity.MEDIUM,
            "No og:description meta tag found",
            "A description makes your shared link more appealing on Facebook.",
            'Add: <meta property="og:description" content="Your page description">',
            penalty=10,
        )
    if not og_image:
        f.add(
            "Missing Facebook sharing image",
            Severity.LOW,
            "No og:image meta tag found",
            "An image makes your shared link stand out on Facebook.",
            'Add: <meta property="og:image" content="https://yoursite.com/image.jpg">',
            penalty=5,
        )
    if not twitter_card and not twitter_title:
        f.add(
            "Missing Twitter Card tags",
            Severity.LOW,
            "No Twitter Card meta tags found",
            "Twitter Cards make your shared links look better on Twitter.",
            'Add Twitter Card tags: <meta name="twitter:card" content="summary"> and related tags.',
            penalty=10,
        )

    profiles = social_profiles(snapshot)
    if not profiles:
        f.add(
            "No social media profiles linked",
            Severity.LOW,
            "No links to social profiles found in the page or in schema sameAs",
            "Linking your social profiles helps customers and search engines connect your accounts to your business.",
            "Add links to your business's social media pages, usually in the footer.",
            penalty=5,
        )

    return f.result(SUMMARIES, evidence={
        "ogTitle": og_title,
        "ogDescription": og_description,
        "ogImage": og_image,
        "ogUrl": snapshot.meta("og:url"),
        "twitterCard": twitter_card,
        "twitterTitle": twitter_title,
        "socialProfiles": profiles[:10],
    })
