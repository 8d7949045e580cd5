import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import TransportError
from ..settings import Settings

logger = logging.getLogger(__name__)


def _headers(settings: Settings) -> Dict[str, str]:
    return {"Authorization": f"Bearer {settings.RESEND_API_KEY}", "Content-Type": "application/json"}


async def get_resend_domain(client: httpx.AsyncClient, settings: Settings) -> Optional[Dict[str, Any]]:
    """The Resend domain record matching RESEND_DOMAIN, or None if it was never added."""
    r = await client.get(
        f"{settings.RESEND_API_URL}/domains", headers=_headers(settings), timeout=settings.EMAIL_TIMEOUT
    )
    r.raise_for_status()
    wanted = (settings.RESEND_DOMAIN or "").strip().lower()
    for d in r.json().get("data", []):
        if (d.get("name") or "").lower() == wanted:
            return d
    return None


async def ensure_click_tracking_disabled(client: httpx.AsyncClient, settings: Settings) -> Dict[str, Any]:
    """
    Report links are one-time tokens and must reach the customer unmodified,
    so the sending domain must not rewrite them. Raises TransportError when
    that cannot be confirmed.
    """
    domain = await get_resend_domain(client, settings)
    if domain is None:
        raise TransportError("resend", f"Domain {settings.RESEND_DOMAIN!r} not added in Resend")
    if domain.get("click_tracking") is False:
        return domain

    r = await client.patch(
        f"{settings.RESEND_API_URL}/domains/{domain['id']}",
        headers=_headers(settings),
        json={"click_tracking": False},
        timeout=settings.EMAIL_TIMEOUT,
    )
    if r.status_code >= 400:
        raise TransportError("resend", f"Could not disable click tracking (HTTP {r.status_code})")
    logger.info("Disabled click tracking for Resend domain %s", domain.get("name"))
    return {**domain, "click_tracking": False}
