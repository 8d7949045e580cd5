import re

from ...schemas import ModuleKey, ModuleResult, Severity
from ..fetcher import SiteSnapshot
from .base import CheckContext, Findings, inline_style

SUMMARIES = (
    "Your site is mobile-friendly. Keep up the good work!",
    "Your site works on mobile but could be improved. Add a viewport tag and check button sizes.",
    "Your site needs mobile optimization. Start by adding a proper viewport meta tag.",
)

RECOMMENDED_VIEWPORT = '<meta name="viewport" content="width=device-width, initial-scale=1">'
FONT_SIZE = re.compile(r"font-size:(\d+(?:\.\d+)?)px")
HEIGHT = re.compile(r"(?<![-\w])height:(\d+(?:\.\d+)?)px")
FIXED_WIDTH = re.compile(r"(?<![-\w])(?:min-)?width:\d+(?:\.\d+)?px")
MIN_FONT_PX = 14
MAX_SMALL_TEXT = 5
MIN_TOUCH_PX = 44


async def check_mobile(snapshot: SiteSnapshot, ctx: CheckContext) -> ModuleResult:
    f = Findings(ModuleKey.MOBILE)
    doc = snapshot.document

    viewport = snapshot.meta("viewport")
    viewport_optimal = bool(viewport) and "width=device-width" in viewport.replace(" ", "").lower()
    if not viewport:
        f.add(
            "Missing mobile viewport setting",
            Severity.HIGH,
            "No viewport meta tag found",
            "Without this, your site won't display properly on phones and tablets.",
            f"Add this code to your page header: {RECOMMENDED_VIEWPORT}",
            penalty=30,
            evidence={"expected": RECOMMENDED_VIEWPORT},
        )
    elif not viewport_optimal:
        f.add(
            "Viewport setting may not be optimal",
            Severity.MEDIUM,
            "Viewport tag exists but may not be configured correctly",
            "Your mobile display settings may not be optimal.",
            f"Update your viewport tag to: {RECOMMENDED_VIEWPORT}",
            penalty=15,
            evidence={"found": viewport, "expected": "width=device-width, initial-scale=1"},
        )

    body = doc.body
    fixed_width = bool(body is not None and FIXED_WIDTH.search(inline_style(body)))
    if fixed_width:
        f.add(
            "Site may use fixed widths",
            Severity.MEDIUM,
            "Body element has a fixed pixel width",
            "Fixed widths can make your site hard to use on small screens.",
            "Ask your web designer to use responsive (flexible) widths instead of fixed pixel widths.",
            penalty=10,
            evidence={"found": body.get("style")},
        )

    small_text = 0
    for tag in doc.find_all(style=True):
        m = FONT_SIZE.search(inline_style(tag))
        if m and float(m.group(1)) < MIN_FONT_PX:
            small_text += 1
    if small_text > MAX_SMALL_TEXT:
        f.add(
            "Some text may be too small on mobile",
            Severity.LOW,
            f"Found {small_text} elements with font size less than {MIN_FONT_PX}px",
            "Small text is hard to read on phones.",
            "Ensure all text is at least 14-16 pixels for comfortable mobile reading.",
            penalty=5,
            evidence={"count": small_text},
        )

    targets = doc.select('button, a[href], input[type="button"], input[type="submit"]')
    small_targets = 0
    for tag in targets:
        m = HEIGHT.search(inline_style(tag))
        if m and float(m.group(1)) < MIN_TOUCH_PX:
            small_targets += 1
    if small_targets:
        f.add(
            "Some buttons may be too small for mobile",
            Severity.LOW,
            f"Found buttons smaller than {MIN_TOUCH_PX}px height",
            "Small buttons are hard to tap on phones.",
            "Make sure all buttons and clickable links are at least 44x44 pixels.",
            penalty=5,
            evidence={
                "found": f"{small_targets} buttons too small",
                "expected": "All buttons should be at least 44x44 pixels",
                "count": small_targets,
            },
        )

    return f.result(SUMMARIES, evidence={
        "viewport": viewport,
        "hasViewport": bool(viewport),
        "viewportOptimal": viewport_optimal,
        "hasFixedWidth": fixed_width,
        "smallTextElements": small_text,
        "totalButtons": len(targets),
        "smallButtons": small_targets,
        "touchTargetsOptimal": small_targets == 0,
    })
