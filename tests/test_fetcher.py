import asyncio

import httpx
import pytest

from sitecheck.audit.fetcher import build_snapshot, fetch_site
from sitecheck.errors import FetchError

pytestmark = pytest.mark.anyio


async def test_fetch_parses_title_description_and_headers(settings, make_client, serve_site, good_html):
    client = make_client(serve_site(good_html))
    snapshot = await fetch_site("acme.example", client=client, settings=settings)

    assert snapshot.url == "https://acme.example/"
    assert snapshot.http_status == 200
    assert snapshot.is_https
    assert snapshot.content_type == "text/html"
    assert snapshot.title.startswith("Acme Plumbing")
    assert snapshot.meta_description.startswith("Licensed plumbers")
    assert snapshot.headers["x-frame-options"] == "DENY"
    assert snapshot.content_length > 0


async def test_404_raises_fetch_error(settings, make_client):
    client = make_client(lambda request: httpx.Response(404, text="gone"))
    with pytest.raises(FetchError) as exc:
        await fetch_site("https://acme.example/missing", client=client, settings=settings)
    assert exc.value.status_code == 404
    assert str(exc.value) == "HTTP 404"


async def test_network_error_raises_fetch_error(settings, make_client):
    def handler(request):
        raise httpx.ConnectError("name resolution failed", request=request)

    with pytest.raises(FetchError, match="Failed to fetch"):
        await fetch_site("https://nowhere.example/", client=make_client(handler), settings=settings)


async def test_timeout_raises_fetch_error(settings, make_client):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, text="<html></html>")

    with pytest.raises(FetchError, match="Request timeout"):
        await fetch_site("https://slow.example/", client=make_client(slow), settings=settings, timeout=0.05)


class SlowTransport(httpx.AsyncBaseTransport):
    """Answers after `delay` seconds, unless the request's read timeout runs out first."""

    def __init__(self, delay, html="<html><head><title>Slow</title></head></html>"):
        self.delay = delay
        self.html = html
        self.read_timeouts = []

    async def handle_async_request(self, request):
        read = request.extensions.get("timeout", {}).get("read")
        self.read_timeouts.append(read)
        if read is not None and read < self.delay:
            await asyncio.sleep(read)
            raise httpx.ReadTimeout("read timed out", request=request)
        await asyncio.sleep(self.delay)
        return httpx.Response(200, text=self.html, request=request)


async def test_slow_page_inside_the_fetch_deadline_is_not_cut_short(settings):
    transport = SlowTransport(delay=0.3)
    # a client whose own default would give up first
    client = httpx.AsyncClient(transport=transport, timeout=0.1)
    patient = settings.model_copy(update={"FETCH_TIMEOUT": 2.0})

    snapshot = await fetch_site("https://slow.example/", client=client, settings=patient)

    assert snapshot.title == "Slow"
    assert transport.read_timeouts == [2.0]


async def test_transport_read_timeout_is_reported_as_a_timeout(settings):
    client = httpx.AsyncClient(transport=SlowTransport(delay=1.0))
    with pytest.raises(FetchError, match="Request timeout"):
        await fetch_site("https://slow.example/", client=client, settings=settings, timeout=0.1)


async def test_invalid_url_raises_fetch_error(settings, make_client):
    with pytest.raises(FetchError):
        await fetch_site("   ", client=make_client(), settings=settings)


async def test_redirect_records_final_url(settings, make_client, good_html):
    def handler(request):
        if request.url.host == "acme.example":
            return httpx.Response(301, headers={"Location": "https://www.acme.example/"})
        return httpx.Response(200, text=good_html)

    snapshot = await fetch_site("https://acme.example/", client=make_client(handler), settings=settings)
    assert snapshot.final_url == "https://www.acme.example/"
    assert snapshot.has_redirect


def test_description_falls_back_to_open_graph():
    html = '<html><head><meta property="og:description" content="From OG"></head><body></body></html>'
    snapshot = build_snapshot("https://a.example/", html)
    assert snapshot.meta_description == "From OG"


def test_content_length_falls_back_to_body_size():
    snapshot = build_snapshot("https://a.example/", "<p>héllo</p>", headers={})
    assert snapshot.content_length == len("<p>héllo</p>".encode("utf-8"))
    assert snapshot.content_type == "unknown"


def test_body_text_skips_scripts_and_comments():
    html = "<body><p>one two</p><script>var three;</script><!-- four --><style>p{}</style><p>five</p></body>"
    snapshot = build_snapshot("https://a.example/", html)
    assert snapshot.word_count == 3


def test_json_ld_graph_is_flattened_and_invalid_blocks_counted():
    html = """<head>
    <script type="application/ld+json">{"@graph": [{"@type": "Organization"}, {"@type": ["WebSite"]}]}</script>
    <script type="application/ld+json">{not json</script>
    </head>"""
    scan = build_snapshot("https://a.example/", html).json_ld
    assert scan.blocks == 2
    assert scan.invalid == 1
    assert scan.types() == ["Organization", "WebSite"]
