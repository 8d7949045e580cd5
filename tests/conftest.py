import httpx
import pytest

from sitecheck.audit.fetcher import build_snapshot
from sitecheck.audit.modules import CheckContext
from sitecheck.settings import Settings

TITLE = "Acme Plumbing - Emergency Plumbers in Springfield, Illinois"
DESCRIPTION = (
    "Licensed plumbers in Springfield for leaks, drains and water heaters. "
    "Same-day service, upfront pricing and a 1-year guarantee on all work."
)
BODY_COPY = " ".join(["Our team handles repairs quickly and cleanly."] * 50)

SECURE_HEADERS = {
    "Content-Type": "text/html; charset=utf-8",
    "Strict-Transport-Security": "max-age=31536000",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": "default-src 'self'",
}

GOOD_HTML = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <title>{TITLE}</title>
  <meta name="description" content="{DESCRIPTION}">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta property="og:title" content="Acme Plumbing">
  <meta property="og:description" content="Emergency plumbing in Springfield.">
  <meta property="og:image" content="https://acme.example/og.jpg">
  <meta name="twitter:card" content="summary">
  <script type="application/ld+json">
  {{"@context": "https://schema.org", "@type": "LocalBusiness", "name": "Acme Plumbing",
    "url": "https://acme.example/", "telephone": "+1-217-555-0134"}}
  </script>
</head>
<body>
  <nav><a href="/services">Services</a> <a href="/about">About</a> <a href="/contact">Contact</a></nav>
  <h1>Emergency Plumbers in Springfield</h1>
  <h2>What we do</h2>
  <p>{BODY_COPY}</p>
  <img src="/van.jpg" alt="Our service van" loading="lazy">
  <form><label for="email">Email</label><input type="email" id="email"></form>
  <footer>
    <p>123 Main Street, Springfield, IL 62704</p>
    <a href="tel:+12175550134">Call (217) 555-0134</a>
    <a href="https://www.facebook.com/acmeplumbing">Facebook</a>
    <iframe src="https://www.google.com/maps/embed?pb=acme"></iframe>
  </footer>
</body>
</html>"""


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="",
        REPORT_MODE="simple",
        RESEND_API_KEY="re_test",
        RESEND_DOMAIN=None,
        EMAIL_PROVIDER="resend",
        EMAIL_USE_FALLBACK=True,
        PUBLIC_URL="https://seochecksite.net",
        DATABASE_URL="sqlite://",
    )


@pytest.fixture
def good_html():
    return GOOD_HTML


@pytest.fixture
def make_snapshot():
    def factory(html, url="https://acme.example/", headers=None, **kwargs):
        return build_snapshot(url, html, headers=SECURE_HEADERS if headers is None else headers, **kwargs)
    return factory


def not_found(request):
    return httpx.Response(404)


@pytest.fixture
def make_client():
    def factory(handler=not_found):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def make_ctx(settings, make_client):
    def factory(handler=not_found, competitor_url=None):
        return CheckContext(client=make_client(handler), settings=settings, competitor_url=competitor_url)
    return factory


def site_handler(html, headers=None, robots="User-agent: *\nAllow: /", sitemap=True):
    """Serves `html` at every page URL plus robots.txt and sitemap.xml; HEAD requests succeed."""
    def handler(request):
        path = request.url.path
        if path == "/robots.txt":
            return httpx.Response(200, text=robots) if robots is not None else httpx.Response(404)
        if path == "/sitemap.xml":
            if not sitemap:
                return httpx.Response(404)
            return httpx.Response(
                200,
                text="<urlset><url><loc>https://acme.example/</loc></url>"
                     "<url><loc>https://acme.example/about</loc></url></urlset>",
            )
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(200, text=html, headers=headers or SECURE_HEADERS)
    return handler


@pytest.fixture
def serve_site():
    return site_handler
