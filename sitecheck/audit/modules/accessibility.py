import re

from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings, images_missing_alt, inline_style

SUMMARIES = (
    "Your site is accessible. Good job making your site usable for everyone!",
    "Your site accessibility needs improvement. Focus on adding alt text to images and labels to forms.",
    "Your site needs significant accessibility improvements. Start with image descriptions and form labels.",
)

FORM_FIELDS = 'input[type="text"], input[type="email"], input[type="tel"], input[type="search"], ' \
              'input[type="password"], input:not([type]), textarea, select'
LOW_CONTRAST = re.compile(r"(?<![-\w])color:(?:gray|grey|silver|lightgray|lightgrey|#999|#999999|#aaa|#aaaaaa|#ccc|#cccccc)\b")
MAX_LOW_CONTRAST = 5


def _has_label(field, document) -> bool:
    for attr in ("aria-label", "aria-labelledby", "placeholder", "title"):
        if (field.get(attr) or "").strip():
            return True
    field_id = (field.get("id") or "").strip()
    if field_id and document.find("label", attrs={"for": field_id}) is not None:
        return True
    return field.find_parent("label") is not None


def heading_skips(document) -> int:
    skips = 0
    last = 0
    for heading in document.find_all(re.compile(r"^h[1-6]$")):
        level = int(heading.name[1])
        if last and level > last + 1:
            skips += 1
        last = level
    return skips


async def check_accessibility(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.ACCESSIBILITY)
    doc = snapshot.document

    total_images, missing_alt = images_missing_alt(doc)
    if missing_alt:
        f.add(
            f"{missing_alt} image{'s' if missing_alt > 1 else ''} missing descriptions",
            Severity.HIGH if missing_alt > 5 else Severity.MEDIUM,
            f"{missing_alt} images without alt attributes",
            "Image descriptions help people using screen readers understand your images.",
            'Add descriptive alt text to all images. For decorative images, use alt="".',
            penalty=min(20, missing_alt * 3),
            evidence={"count": missing_alt},
        )

    fields = doc.select(FORM_FIELDS)
    unlabeled = sum(1 for field in fields if not _has_label(field, doc))
    if unlabeled:
        f.add(
            f"{unlabeled} form field{'s' if unlabeled > 1 else ''} missing labels",
            Severity.HIGH if unlabeled > 3 else Severity.MEDIUM,
            f"{unlabeled} form inputs without proper labels",
            "Form fields need labels so everyone knows what information to enter.",
            "Add labels to all form fields. Use <label> tags or aria-label attributes.",
            penalty=min(20, unlabeled * 5),
            evidence={"count": unlabeled},
        )

    skips = heading_skips(doc)
    if skips:
        f.add(
            "Heading structure may be confusing",
            Severity.LOW,
            "Headings skip levels (e.g., H1 to H3)",
            "Proper heading order helps screen readers navigate your page.",
            "Use headings in order: H1 first, then H2, then H3, etc. Don't skip levels.",
            penalty=5,
            evidence={"count": skips},
        )

    low_contrast = sum(1 for tag in doc.find_all(style=True) if LOW_CONTRAST.search(inline_style(tag)))
    if low_contrast > MAX_LOW_CONTRAST:
        f.add(
            "Some text may have low contrast",
            Severity.MEDIUM,
            "Found elements with potentially low color contrast",
            "Low contrast text is hard to read, especially for people with vision difficulties.",
            "Ensure all text has sufficient contrast with its background. "
            "Use dark text on light backgrounds or vice versa.",
            penalty=10,
            evidence={"count": low_contrast},
        )

    html = doc.find("html")
    lang = (html.get("lang") or "").strip() if html is not None else ""
    if not lang:
        f.add(
            "Page language is not declared",
            Severity.LOW,
            "The <html> element has no lang attribute",
            "Screen readers use the page language to pronounce words correctly.",
            'Add a language to your page, for example <html lang="en">.',
            penalty=5,
        )

    return f.result(SUMMARIES, evidence={
        "totalImages": total_images,
        "missingAltCount": missing_alt,
        "formFields": len(fields),
        "unlabeledFields": unlabeled,
        "headingSkips": skips,
        "lowContrastElements": low_contrast,
        "lang": lang or None,
    })
