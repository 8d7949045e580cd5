import re
from typing import Dict, List, Sequence, Set, Tuple

from ...schemas import ModuleKey, ModuleResult, Severity
from ...utils.urls import domain_of
from ..fetcher import SiteSnapshot, node_types
from .base import CheckContext, Findings
from .local import STREET

SUMMARIES = (
    "Your structured data is well implemented. This helps search engines understand your business.",
    "Your structured data needs improvement. Add the schema types that match your kind of site.",
    "Your site needs structured data. Add schema markup to help search engines understand your business.",
)

PUBLISHER_DOMAINS = {
    "nytimes.com", "washingtonpost.com", "theguardian.com", "bbc.com", "bbc.co.uk", "cnn.com",
    "reuters.com", "apnews.com", "forbes.com", "bloomberg.com", "wsj.com", "npr.org",
}
ENTERPRISE_DOMAINS = {
    "microsoft.com", "apple.com", "google.com", "amazon.com", "ibm.com", "oracle.com",
    "salesforce.com", "adobe.com", "intel.com", "cisco.com", "sap.com",
}
BLOG_HOST_SUFFIXES = (".wordpress.com", ".blogspot.com", ".substack.com", ".ghost.io", "medium.com")

TYPE_HINTS: Dict[str, str] = {
    "newsarticle": "publisher",
    "newsmediaorganization": "publisher",
    "blogposting": "blog",
    "blog": "blog",
    "product": "ecommerce",
    "offer": "ecommerce",
    "onlinestore": "ecommerce",
    "softwareapplication": "saas",
    "webapplication": "saas",
    "corporation": "enterprise",
    "localbusiness": "local-business",
}

ECOMMERCE_WORDS = ("add to cart", "add to bag", "checkout", "shop now", "free shipping")
SAAS_WORDS = ("free trial", "start trial", "pricing", "sign up free", "book a demo", "request a demo")
BUSINESS_SUFFIX = re.compile(r"\b(?:LLC|L\.L\.C\.|Inc\.?|Ltd\.?|Co\.)(?=\W|$)")
LONG_FORM_WORDS = 1500

# each group is satisfied by any one of its types
EXPECTED_SCHEMA: Dict[str, List[Tuple[str, Set[str]]]] = {
    "publisher": [("Article", {"newsarticle", "article", "reportagenewsarticle"}),
                  ("Publisher organization", {"organization", "newsmediaorganization"})],
    "blog": [("BlogPosting", {"blogposting", "article", "blog"}),
             ("Author", {"person", "organization"})],
    "local-business": [("LocalBusiness", {"localbusiness"})],
    "ecommerce": [("Product", {"product"}),
                  ("Organization", {"organization", "store", "onlinestore"})],
    "saas": [("SoftwareApplication", {"softwareapplication", "webapplication", "product"}),
             ("Organization", {"organization", "corporation"})],
    "enterprise": [("Organization", {"organization", "corporation"}),
                   ("WebSite", {"website"})],
    "unknown": [("Organization", {"organization", "localbusiness", "corporation"})],
}

BUSINESS_NODE_TYPES = {"organization", "localbusiness", "corporation", "store", "onlinestore"}


def _is_business_type(t: str) -> bool:
    return t in BUSINESS_NODE_TYPES or t.endswith("business")


def _satisfies(found: Set[str], accepted: Set[str]) -> bool:
    if found & accepted:
        return True
    return "localbusiness" in accepted and any(t.endswith("business") for t in found)


def classify_site(snapshot: SiteSnapshot, types: Sequence[str]) -> Tuple[str, str]:
    """(site type, signal that decided it). Domain lists win, then schema hints, then content."""
    domain = domain_of(snapshot.final_url)
    if domain in PUBLISHER_DOMAINS:
        return "publisher", "domain"
    if domain in ENTERPRISE_DOMAINS:
        return "enterprise", "domain"
    if domain.endswith(BLOG_HOST_SUFFIXES):
        return "blog", "domain"

    lowered = [t.lower() for t in types]
    for t in lowered:
        if t in TYPE_HINTS:
            return TYPE_HINTS[t], f"schema:{t}"
    if any(t.endswith("business") for t in lowered):
        return "local-business", "schema:localbusiness"

    text = snapshot.body_text
    lower_text = text.lower()
    if any(w in lower_text for w in ECOMMERCE_WORDS):
        return "ecommerce", "content"
    if any(w in lower_text for w in SAAS_WORDS):
        return "saas", "content"
    # street address plus a company suffix reads as a local business
    if STREET.search(text) and BUSINESS_SUFFIX.search(text):
        return "local-business", "content:address"
    articles = len(snapshot.document.find_all("article"))
    if articles >= 3:
        return "blog", "content:articles"
    if snapshot.word_count >= LONG_FORM_WORDS and articles:
        return "publisher", "content:word-count"
    return "unknown", "none"


async def check_schema(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.SCHEMA)
    scan = snapshot.json_ld
    types = scan.types()
    found = {t.lower() for t in types}
    site_type, signal = classify_site(snapshot, types)
    missing_groups: List[str] = []

    if not scan.nodes:
        f.add(
            "No structured data found",
            Severity.HIGH,
            "No JSON-LD schema markup detected",
            "Structured data helps search engines understand your business and show rich results.",
            "Add schema markup (structured data) with your business information. "
            'Ask your web designer about "Organization schema" or "LocalBusiness schema".',
            penalty=30,
            evidence={"expected": [label for label, _ in EXPECTED_SCHEMA[site_type]]},
        )
    else:
        for label, accepted in EXPECTED_SCHEMA[site_type]:
            if _satisfies(found, accepted):
                continue
            missing_groups.append(label)
            f.add(
                f"Missing {label} schema",
                Severity.MEDIUM,
                f"Site looks like a {site_type} site but has no {label} structured data",
                f"Sites like yours usually describe their {label.lower()} with schema so search engines can show richer results.",
                f'Add {label} schema markup. Ask your web designer about "{label} schema".',
                penalty=15,
                evidence={"found": sorted(found), "expected": label},
            )

        for node in scan.nodes:
            node_kinds = [t.lower() for t in node_types(node)]
            if not any(_is_business_type(t) for t in node_kinds):
                continue
            if not node.get("name"):
                f.add(
                    "Schema missing business name",
                    Severity.MEDIUM,
                    "Organization/LocalBusiness schema missing name field",
                    "Your business schema needs a name field.",
                    'Add a "name" field to your schema markup with your business name.',
                    penalty=10,
                )
            if not node.get("url") and not node.get("sameAs"):
                f.add(
                    "Schema missing website URL",
                    Severity.LOW,
                    "Schema missing url or sameAs field",
                    "Adding your website URL to schema helps search engines connect your business to your site.",
                    'Add a "url" field to your schema with your website address.',
                    penalty=5,
                )

    if scan.invalid:
        f.add(
            "Some structured data could not be read",
            Severity.LOW,
            f"{scan.invalid} JSON-LD block(s) are empty or not valid JSON",
            "Search engines ignore structured data they cannot read.",
            "Check your schema markup with Google's Rich Results Test and fix the errors it reports.",
            penalty=5,
            evidence={"count": scan.invalid},
        )

    return f.result(SUMMARIES, evidence={
        "siteType": site_type,
        "siteTypeSignal": signal,
        "jsonLdBlocks": scan.blocks,
        "invalidBlocks": scan.invalid,
        "schemaTypes": sorted(set(types)),
        "missingSchemaGroups": missing_groups,
    })
