from dataclasses import dataclass
from datetime import date
from typing import Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ..schemas import AuditResult, NarrativeReport
from ..utils.urls import domain_of

env = Environment(
    loader=PackageLoader("sitecheck", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


@dataclass(frozen=True)
class RenderedReport:
    html: str
    plaintext: str


def _context(report: NarrativeReport, result: AuditResult, *, brand: str,
             report_url: Optional[str], on: Optional[date]) -> dict:
    on = on or date.today()
    return {
        "brand": brand,
        "domain": domain_of(result.url),
        "url": result.url,
        "date": f"{on:%B} {on.day}, {on.year}",
        "report": report,
        "result": result,
        "page": result.page_analysis,
        "report_url": report_url,
    }


def render_report(
    report: NarrativeReport,
    result: AuditResult,
    *,
    brand: str = "SEO CheckSite",
    report_url: Optional[str] = None,
    on: Optional[date] = None,
) -> RenderedReport:
    """HTML and plaintext bodies for the same report. Plaintext is never generated separately."""
    ctx = _context(report, result, brand=brand, report_url=report_url, on=on)
    return RenderedReport(
        html=env.get_template("report.html").render(**ctx),
        plaintext=env.get_template("report.txt").render(**ctx),
    )


def render_failure_notice(url: str, *, brand: str = "SEO CheckSite") -> RenderedReport:
    ctx = {"brand": brand, "domain": domain_of(url)}
    return RenderedReport(
        html=env.get_template("failure_notice.html").render(**ctx),
        plaintext=env.get_template("failure_notice.txt").render(**ctx),
    )
