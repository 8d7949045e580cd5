from urllib.parse import urljoin, urlparse

from ..schemas import PageAnalysis
from ..utils.urls import is_skippable, same_site
from .fetcher import SiteSnapshot
from .modules.base import images_missing_alt
from .modules.on_page import visible_h1_texts


def _format_size(n: int) -> str:
    if n >= 1024 * 1024:
        return f"{n / (1024 * 1024):.1f} MB"
    if n >= 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n} B"


def analyze_page(snapshot: SiteSnapshot) -> PageAnalysis:
    """Page-level facts shown in the report header."""
    doc = snapshot.document
    base = urlparse(snapshot.final_url)

    internal = external = 0
    for a in doc.find_all("a", href=True):
        href = a["href"].strip()
        if is_skippable(href):
            continue
        parsed = urlparse(urljoin(snapshot.final_url, href))
        if not parsed.netloc:
            continue
        if same_site(parsed.netloc, base.netloc):
            internal += 1
        else:
            external += 1

    robots = (snapshot.meta("robots") or "").lower()
    h1_texts = visible_h1_texts(snapshot)
    total_images, missing_alt = images_missing_alt(doc)

    return PageAnalysis(
        url=snapshot.url,
        final_url=snapshot.final_url,
        http_status=snapshot.http_status,
        content_type=snapshot.content_type,
        page_size=_format_size(snapshot.content_length) if snapshot.content_length else None,
        has_redirect=snapshot.has_redirect,
        is_https=snapshot.is_https,
        title=snapshot.title or None,
        meta_description=snapshot.meta_description or None,
        h1_text=h1_texts[0] if h1_texts else None,
        h1_count=len(h1_texts),
        h2_count=len(doc.find_all("h2")),
        word_count=snapshot.word_count,
        total_images=total_images,
        missing_alt_text=missing_alt,
        internal_links=internal,
        external_links=external,
        is_indexable="noindex" not in robots,
    )
