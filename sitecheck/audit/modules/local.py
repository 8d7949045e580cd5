import re
from dataclasses import dataclass
from typing import Optional

from ...schemas import ModuleKey, ModuleResult, Severity
from ...settings import Settings
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings

SUMMARIES = (
    "Your local SEO is well set up. Customers can easily find your location and contact information.",
    "Your local SEO needs improvement. Add your address, phone number, and consider adding structured data.",
    "Your local SEO needs significant work. Start by adding your complete business address and phone number.",
)

STREET_TYPES = (
    "street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln|way|circle|cir|"
    "court|ct|place|pl|parkway|pkwy|highway|hwy|terrace|ter|trail|trl"
)
STREET = re.compile(
    r"\b\d{1,6}\s+(?:[A-Za-z0-9.'-]+\s+){0,4}(?:" + STREET_TYPES + r")\b\.?",
    re.IGNORECASE,
)
# "Springfield, IL 62704" / "Austin, TX 78701-1234"
CITY_STATE_ZIP = re.compile(r"\b[A-Z][A-Za-z.' -]{1,40},\s*[A-Z]{2}\s+\d{5}(?:-\d{4})?\b")
PHONE = re.compile(r"(?:\+?1[-.\s]?)?\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b")
MAP_MARKERS = ("google.com/maps", "maps.google.", "goo.gl/maps", "maps.app.goo.gl")

LOCAL_SCHEMA_TYPES = {
    "localbusiness", "organization", "restaurant", "store", "dentist", "physician",
    "legalservice", "autorepair", "homeandconstructionbusiness", "professionalservice",
}


@dataclass(frozen=True)
class LocalHeuristics:
    """Tunable thresholds for the address/phone heuristics."""
    address_window: int = 100
    no_address: int = 25
    partial_address: int = 10
    no_city_state: int = 15
    no_phone: int = 25
    no_schema: int = 20
    no_map: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalHeuristics":
        return cls(
            address_window=settings.LOCAL_ADDRESS_WINDOW,
            no_address=settings.LOCAL_PENALTY_NO_ADDRESS,
            partial_address=settings.LOCAL_PENALTY_PARTIAL_ADDRESS,
            no_city_state=settings.LOCAL_PENALTY_NO_CITY_STATE,
            no_phone=settings.LOCAL_PENALTY_NO_PHONE,
            no_schema=settings.LOCAL_PENALTY_NO_SCHEMA,
            no_map=settings.LOCAL_PENALTY_NO_MAP,
        )


def schema_street_address(snapshot: SiteSnapshot) -> Optional[str]:
    for node in snapshot.json_ld.nodes:
        address = node.get("address")
        candidates = address if isinstance(address, list) else [address, node]
        for candidate in candidates:
            if isinstance(candidate, dict) and candidate.get("streetAddress"):
                return str(candidate["streetAddress"])
    return None


def classify_address(text: str, window: int) -> str:
    """
    'full'       street + city/state/ZIP within `window` chars after it
    'partial'    city/state/ZIP present but not next to a street line
    'street'     street only
    'none'       nothing recognisable
    """
    streets = list(STREET.finditer(text))
    for m in streets:
        if CITY_STATE_ZIP.search(text[m.start(): m.end() + window]):
            return "full"
    if CITY_STATE_ZIP.search(text):
        return "partial"
    return "street" if streets else "none"


def find_phone(snapshot: SiteSnapshot) -> Optional[str]:
    tel = snapshot.document.select_one('a[href^="tel:"]')
    if tel is not None:
        return tel["href"][4:].strip() or "tel: link"
    m = PHONE.search(snapshot.body_text)
    return m.group(0) if m else None


def has_local_schema(snapshot: SiteSnapshot) -> bool:
    for t in snapshot.json_ld.types():
        lowered = t.lower()
        if lowered in LOCAL_SCHEMA_TYPES or lowered.endswith("business"):
            return True
    return False


def has_map(snapshot: SiteSnapshot) -> bool:
    doc = snapshot.document
    for tag in doc.find_all(["iframe", "a"]):
        target = (tag.get("src") or tag.get("href") or "").lower()
        if any(marker in target for marker in MAP_MARKERS):
            return True
    text = snapshot.body_text.lower()
    return "google maps" in text or "google business" in text


async def check_local(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    rules = LocalHeuristics.from_settings(ctx.settings)
    f = Findings(ModuleKey.LOCAL)

    schema_address = schema_street_address(snapshot)
    address = "full" if schema_address else classify_address(snapshot.body_text, rules.address_window)

    if address == "none":
        f.add(
            "Business address not found",
            Severity.HIGH,
            "No address pattern detected in page content",
            "Local customers need to find your address easily.",
            "Add your complete business address (street, city, state, zip) to your website, "
            "preferably in the footer or contact page.",
            penalty=rules.no_address,
        )
    elif address == "partial":
        f.add(
            "Business address is incomplete",
            Severity.MEDIUM,
            "City/state/ZIP found but no street address next to it",
            "Customers can see roughly where you are, but not exactly how to find you.",
            "Show your full street address together with your city, state and ZIP code.",
            penalty=rules.partial_address,
        )
    elif address == "street":
        f.add(
            "City and state information not clearly visible",
            Severity.MEDIUM,
            "City/state pattern not detected",
            "Clear location information helps local customers find you.",
            "Make sure your city and state are clearly visible on your website.",
            penalty=rules.no_city_state,
        )

    phone = find_phone(snapshot)
    if not phone:
        f.add(
            "Phone number not found",
            Severity.HIGH,
            "No phone number pattern detected",
            "Customers need an easy way to call you.",
            "Add your business phone number prominently on your site, ideally in the header or footer.",
            penalty=rules.no_phone,
        )

    local_schema = has_local_schema(snapshot)
    if not local_schema:
        f.add(
            "Missing structured business information",
            Severity.MEDIUM,
            "No LocalBusiness or Organization schema found",
            "Structured data helps Google show your business in local search results.",
            "Add structured data (schema markup) with your business name, address, phone, and hours. "
            'Ask your web designer about "LocalBusiness schema".',
            penalty=rules.no_schema,
        )

    maps = has_map(snapshot)
    if not maps:
        f.add(
            "No Google Maps integration found",
            Severity.LOW,
            "No Google Maps embed or link detected",
            "A map helps customers find your location easily.",
            "Add a Google Maps embed or link to your Google Business Profile on your contact page.",
            penalty=rules.no_map,
        )

    return f.result(SUMMARIES, evidence={
        "addressMatch": address,
        "schemaStreetAddress": schema_address,
        "hasPhone": bool(phone),
        "phone": phone,
        "hasLocalSchema": local_schema,
        "hasGoogleMaps": maps,
    })
