from typing import List

from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings

SUMMARIES = (
    "Your site performance looks good. Consider optimizing images and scripts for even better speed.",
    "Your site performance needs improvement. Focus on enabling HTTPS and optimizing images.",
    "Your site performance needs significant improvement. Start with HTTPS and image optimization.",
)

MAX_EAGER_IMAGES = 5
MAX_BLOCKING_SCRIPTS = 3


def _is_blocking(script) -> bool:
    if script.has_attr("async") or script.has_attr("defer"):
        return False
    # module scripts are deferred by default
    return (script.get("type") or "").strip().lower() != "module"


def http_resources(snapshot: SiteSnapshot) -> List[str]:
    found = []
    for tag in snapshot.document.find_all(src=True):
        if tag["src"].strip().lower().startswith("http://"):
            found.append(tag["src"].strip())
    for tag in snapshot.document.find_all("link", href=True):
        if tag["href"].strip().lower().startswith("http://"):
            found.append(tag["href"].strip())
    return found


async def check_performance(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.PERFORMANCE)
    doc = snapshot.document

    if not snapshot.is_https:
        f.add(
            "Site is not using HTTPS",
            Severity.HIGH,
            "Site is served over HTTP instead of HTTPS",
            "Your website is not secure. Visitors may see warnings and search engines prefer secure sites.",
            "Contact your web hosting provider to enable SSL/HTTPS. Most hosting providers offer free SSL certificates.",
            penalty=20,
            evidence={"found": "HTTP (not secure)", "actual": snapshot.url, "expected": "HTTPS (secure connection)"},
        )

    total_images = lazy = eager = 0
    for img in doc.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        total_images += 1
        if (img.get("loading") or "").strip().lower() == "lazy":
            lazy += 1
        else:
            eager += 1

    if eager > MAX_EAGER_IMAGES:
        f.add(
            "Images may be slowing down your site",
            Severity.MEDIUM,
            f"Found {eager} images without lazy loading",
            "Large images can make your site slow to load, especially on mobile devices.",
            'Ask your web designer to add "lazy loading" to images. This makes images load only when visitors scroll to them.',
            penalty=10,
            evidence={
                "found": f"{eager} images without lazy loading",
                "actual": f"{lazy} with lazy loading, {eager} without",
                "expected": 'All images should have loading="lazy" attribute',
                "count": eager,
            },
        )

    scripts = doc.find_all("script", src=True)
    blocking = [s["src"] for s in scripts if _is_blocking(s)]
    async_count = sum(1 for s in scripts if s.has_attr("async"))
    deferred = len(scripts) - len(blocking) - async_count

    if len(blocking) > MAX_BLOCKING_SCRIPTS:
        f.add(
            "Too many scripts may slow page loading",
            Severity.MEDIUM,
            f"Found {len(blocking)} scripts that block page rendering",
            "Scripts can prevent your page from showing quickly to visitors.",
            "Ask your web designer to optimize scripts or move them to load after the page content.",
            penalty=10,
            evidence={
                "found": f"{len(blocking)} blocking scripts",
                "actual": f"{len(blocking)} blocking, {async_count} async, {deferred} deferred",
                "expected": "Scripts should use async or defer attributes",
                "count": len(blocking),
                "details": {"blockingScripts": blocking[:5]},
            },
        )

    insecure = http_resources(snapshot) if snapshot.is_https else []
    if insecure:
        f.add(
            "Site may load some content over insecure connection",
            Severity.MEDIUM,
            f"Found {len(insecure)} resources loaded over HTTP",
            "Loading some content over HTTP can make your site less secure.",
            "Update all links and resources to use HTTPS instead of HTTP.",
            penalty=5,
            evidence={
                "found": f"{len(insecure)} HTTP resources",
                "expected": "All resources should use HTTPS",
                "count": len(insecure),
                "details": {"resources": insecure[:5]},
            },
        )

    stylesheets = len(doc.find_all("link", rel="stylesheet"))
    return f.result(SUMMARIES, evidence={
        "isHttps": snapshot.is_https,
        "totalImages": total_images,
        "imagesWithLazyLoading": lazy,
        "imagesWithoutLazyLoading": eager,
        "totalScripts": len(scripts),
        "blockingScripts": len(blocking),
        "asyncScripts": async_count,
        "deferredScripts": deferred,
        "totalStylesheets": stylesheets,
        "totalResources": total_images + len(scripts) + stylesheets,
        "externalHttpResources": len(insecure),
        "pageSizeBytes": snapshot.content_length,
    })
