from typing import List

from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings, class_list, images_missing_alt, inline_style

SUMMARIES = (
    "Your on-page SEO is in good shape. Keep titles and descriptions clear and descriptive.",
    "Your on-page SEO needs some improvements. Focus on adding titles, descriptions, and proper headings.",
    "Your on-page SEO needs significant work. Start with adding a title, description, and main heading.",
)

TITLE_TARGET = (50, 60)
TITLE_BOUNDS = (25, 65)
DESCRIPTION_TARGET = (120, 160)
MIN_WORDS = 300

SCREEN_READER_CLASSES = {"sr-only", "screen-reader-text", "visually-hidden", "visuallyhidden", "screenreader-only"}
BOILERPLATE_HEADINGS = {"menu", "navigation", "main menu", "skip to content", "search", "site navigation"}


def _hidden(tag) -> bool:
    style = inline_style(tag)
    if "display:none" in style or "visibility:hidden" in style:
        return True
    if tag.has_attr("hidden"):
        return True
    if (tag.get("aria-hidden") or "").strip().lower() == "true":
        return True
    return bool(SCREEN_READER_CLASSES.intersection(class_list(tag)))


def is_visible_heading(heading) -> bool:
    text = " ".join(heading.get_text(" ").split())
    if not text or text.lower() in BOILERPLATE_HEADINGS:
        return False
    node = heading
    while node is not None and getattr(node, "name", None) not in (None, "[document]"):
        if _hidden(node):
            return False
        if node is not heading and (
            node.name == "nav" or (node.get("role") or "").strip().lower() == "navigation"
        ):
            return False
        node = node.parent
    return True


def visible_h1_texts(snapshot: SiteSnapshot) -> List[str]:
    return [
        " ".join(h.get_text(" ").split())
        for h in snapshot.document.find_all("h1")
        if is_visible_heading(h)
    ]


async def check_on_page(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.ON_PAGE)

    title = snapshot.title
    n = len(title)
    title_evidence = {"found": title, "actual": f"{n} characters", "expected": "50-60 characters"}
    if not title:
        f.add(
            "Missing page title",
            Severity.HIGH,
            "No <title> tag found",
            "Search engines need a title to understand what your page is about.",
            "Add a clear, descriptive title (50-60 characters) that describes your page content.",
            penalty=25,
            evidence={"expected": "A title tag with 50-60 characters"},
        )
    elif n < TITLE_BOUNDS[0]:
        f.add(
            "Page title is too short",
            Severity.MEDIUM,
            f"Title is only {n} characters",
            "Short titles don't give search engines enough information.",
            "Make your title longer (aim for 50-60 characters) and include your main keywords.",
            penalty=10,
            evidence=title_evidence,
        )
    elif n < TITLE_TARGET[0]:
        f.add(
            "Page title could be a little longer",
            Severity.LOW,
            f"Title is {n} characters (recommended: 50-60)",
            "A slightly longer title gives you room for your main keywords.",
            "Add a few descriptive words so your title is 50-60 characters.",
            penalty=2,
            evidence=title_evidence,
        )
    elif n > TITLE_BOUNDS[1]:
        f.add(
            "Page title is too long",
            Severity.LOW,
            f"Title is {n} characters (recommended: 50-60)",
            "Long titles get cut off in search results.",
            "Shorten your title to 50-60 characters to ensure it displays fully.",
            penalty=5,
            evidence=title_evidence,
        )
    elif n > TITLE_TARGET[1]:
        f.add(
            "Page title is slightly long",
            Severity.LOW,
            f"Title is {n} characters (recommended: 50-60)",
            "The end of your title may be cut off on some screens.",
            "Trim your title to 50-60 characters.",
            penalty=2,
            evidence=title_evidence,
        )

    description = snapshot.meta_description
    d = len(description)
    description_evidence = {"found": description, "actual": f"{d} characters", "expected": "120-160 characters"}
    if not description:
        f.add(
            "Missing page description",
            Severity.HIGH,
            "No meta description tag found",
            "Descriptions help people decide if they want to visit your site from search results.",
            "Add a description (150-160 characters) that explains what your page offers.",
            penalty=20,
            evidence={"expected": "A meta description tag with 120-160 characters"},
        )
    elif d < DESCRIPTION_TARGET[0]:
        f.add(
            "Page description is too short",
            Severity.MEDIUM,
            f"Description is only {d} characters",
            "Short descriptions don't give enough information to potential visitors.",
            "Expand your description to 150-160 characters with more details about your page.",
            penalty=10,
            evidence=description_evidence,
        )
    elif d > DESCRIPTION_TARGET[1]:
        f.add(
            "Page description is too long",
            Severity.LOW,
            f"Description is {d} characters (recommended: 120-160)",
            "Long descriptions get cut off in search results.",
            "Shorten your description to 160 characters or fewer.",
            penalty=5,
            evidence=description_evidence,
        )

    h1_texts = visible_h1_texts(snapshot)
    if not h1_texts:
        f.add(
            "Missing main heading (H1)",
            Severity.HIGH,
            "No visible H1 tag found",
            "The main heading helps search engines and visitors understand your page topic.",
            "Add one H1 heading at the top of your main content that describes what the page is about.",
            penalty=20,
            evidence={"expected": "One H1 tag with the main page heading"},
        )
    elif len(h1_texts) > 1:
        f.add(
            "Multiple main headings found",
            Severity.MEDIUM,
            f"Found {len(h1_texts)} visible H1 tags (should be 1)",
            "Having multiple main headings confuses search engines about your page focus.",
            "Keep only one H1 tag and use H2, H3 for other headings.",
            penalty=10,
            evidence={
                "found": h1_texts,
                "actual": f"{len(h1_texts)} H1 tags found",
                "expected": "1 H1 tag",
                "count": len(h1_texts),
            },
        )

    words = snapshot.word_count
    if words < MIN_WORDS:
        f.add(
            "Page has very little content",
            Severity.MEDIUM,
            f"Page has only {words} words",
            "Pages with little content don't rank well in search results.",
            "Add more helpful content to your page (aim for at least 300-500 words).",
            penalty=15,
            evidence={"found": f"{words} words", "expected": "At least 300-500 words", "count": words},
        )

    total_images, missing_alt = images_missing_alt(snapshot.document)
    if missing_alt:
        f.add(
            f"{missing_alt} image{'s' if missing_alt > 1 else ''} missing descriptions",
            Severity.HIGH if missing_alt > 5 else Severity.MEDIUM,
            f"{missing_alt} images without alt attributes",
            "Image descriptions help search engines understand your images and improve accessibility.",
            "Add descriptive alt text to all images describing what they show.",
            penalty=min(15, missing_alt * 2),
            evidence={
                "found": f"{missing_alt} images without alt text",
                "actual": f"{missing_alt} missing, {total_images - missing_alt} with alt text",
                "expected": "All images should have descriptive alt text",
                "count": missing_alt,
            },
        )

    doc = snapshot.document
    return f.result(SUMMARIES, evidence={
        "title": title or None,
        "titleLength": n,
        "metaDescription": description or None,
        "metaDescriptionLength": d,
        "h1Text": h1_texts[0] if h1_texts else None,
        "h1Count": len(h1_texts),
        "h2Count": len(doc.find_all("h2")),
        "h3Count": len(doc.find_all("h3")),
        "wordCount": words,
        "imageCount": total_images,
        "missingAltCount": missing_alt,
    })
