from urllib.parse import urljoin, urlparse, urlunparse

SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "#")


def normalize_url(url: str) -> str:
    """
    Trim, default to https:// and lower-case the host.
    'Example.com/Path' -> 'https://example.com/Path'
    """
    url = (url or "").strip()
    if not url:
        raise ValueError("URL is required")
    if "://" not in url:
        url = "https://" + url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid URL: {url}")
    path = parsed.path or "/"
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, parsed.params, parsed.query, ""))


def domain_of(url: str) -> str:
    host = urlparse(url).hostname or url
    return host[4:] if host.startswith("www.") else host


def same_site(netloc_a: str, netloc_b: str) -> bool:
    a = netloc_a.lower().removeprefix("www.")
    b = netloc_b.lower().removeprefix("www.")
    return a == b


def is_skippable(href: str) -> bool:
    if not href:
        return True
    href = href.strip().lower()
    return any(href.startswith(s) for s in SKIP_SCHEMES)


def site_root(url: str, path: str) -> str:
    parsed = urlparse(url)
    return urljoin(f"{parsed.scheme}://{parsed.netloc}", path)
