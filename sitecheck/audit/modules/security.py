from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings
from .performance import http_resources

SUMMARIES = (
    "Your site security looks good. Make sure HTTPS is enabled and keep it that way.",
    "Your site security needs improvement. Enable HTTPS as soon as possible.",
    "Your site security needs immediate attention. Enable HTTPS to protect your visitors.",
)

SECURITY_HEADERS = {
    "strict-transport-security": "HSTS",
    "x-frame-options": "X-Frame-Options",
    "x-content-type-options": "X-Content-Type-Options",
    "x-xss-protection": "X-XSS-Protection",
    "content-security-policy": "Content-Security-Policy",
}
GOOD_BAND = 80


async def check_security(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.SECURITY)

    if not snapshot.is_https:
        f.add(
            "Site is not using HTTPS",
            Severity.HIGH,
            "Site is served over HTTP instead of HTTPS",
            "HTTPS encrypts data between your site and visitors, protecting sensitive information.",
            "Contact your hosting provider to enable SSL/HTTPS. Most providers offer free SSL certificates.",
            penalty=40,
        )

    insecure = http_resources(snapshot) if snapshot.is_https else []
    if insecure:
        # the page itself is encrypted, so this is hygiene rather than an active hole
        f.add(
            "Site may load some content over insecure connection",
            Severity.LOW,
            f"Found {len(insecure)} resources loaded over HTTP",
            "Loading some content over HTTP can make your site less secure.",
            "Update all links and resources to use HTTPS instead of HTTP.",
            penalty=5,
            evidence={"count": len(insecure), "details": {"resources": insecure[:5]}},
        )

    present = [label for header, label in SECURITY_HEADERS.items() if header in snapshot.headers]
    missing = [label for header, label in SECURITY_HEADERS.items() if header not in snapshot.headers]
    if missing:
        f.add(
            "Some recommended security headers are missing",
            Severity.LOW,
            f"Missing response headers: {', '.join(missing)}",
            "Security headers tell browsers to apply extra protections when visitors use your site.",
            "Ask your hosting provider or web developer to enable the missing security headers.",
            penalty=5 if f.clamped >= GOOD_BAND else 0,
            evidence={"found": present, "expected": list(SECURITY_HEADERS.values()), "count": len(missing)},
        )

    return f.result(SUMMARIES, evidence={
        "isHttps": snapshot.is_https,
        "mixedContentCount": len(insecure),
        "securityHeadersPresent": present,
        "securityHeadersMissing": missing,
    })
