from typing import List

from ..schemas import (
    DISPLAY_NAMES,
    AuditIssue,
    AuditResult,
    ModuleResult,
    NarrativeIssue,
    NarrativeModule,
    NarrativeReport,
    Severity,
    TopAction,
)

ALL_CHECKS_PASSED = NarrativeIssue(
    title="All checks passed",
    severity=Severity.LOW,
    why="We didn't find any problems in this area.",
    how="No action needed. Keep doing what you're doing.",
)

MAX_TOP_ACTIONS = 5
MIN_TOP_ACTIONS = 3


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def narrative_issue(issue: AuditIssue) -> NarrativeIssue:
    return NarrativeIssue(
        title=issue.title,
        severity=issue.severity,
        why=issue.plain_language_explanation,
        how=issue.suggested_fix,
    )


def narrative_module(result: ModuleResult) -> NarrativeModule:
    """Deterministic report section built straight from a check result."""
    issues = [narrative_issue(i) for i in result.issues] or [ALL_CHECKS_PASSED.model_copy()]
    return NarrativeModule(
        module_name=DISPLAY_NAMES[result.module_key],
        overview=result.summary,
        issues=issues,
    )


def executive_summary(result: AuditResult) -> List[str]:
    lines: List[str] = []
    if result.overall_score >= 80:
        lines.append("Your website is in good overall health with strong SEO fundamentals.")
    elif result.overall_score >= 60:
        lines.append("Your website has room for improvement but shows solid foundations.")
    else:
        lines.append("Your website needs attention in several key areas to improve search visibility.")

    modules = result.modules
    lines.append(f"We checked {_plural(len(modules), 'area')} of your website.")

    counts = {s: sum(1 for m in modules for i in m.issues if i.severity == s) for s in Severity}
    total = sum(counts.values())
    high, medium, low = counts[Severity.HIGH], counts[Severity.MEDIUM], counts[Severity.LOW]
    if total == 0:
        lines.append("No issues found! Your site is performing well across all checked areas.")
    else:
        lines.append(f"Found {_plural(total, 'issue')} total.")
        if high:
            lines.append(f"{_plural(high, 'high-priority issue')} need{'s' if high == 1 else ''} immediate attention.")
        if medium:
            lines.append(f"{_plural(medium, 'medium-priority issue')} to address.")
        if low and not high and not medium:
            lines.append(f"{_plural(low, 'minor issue')} that can be improved over time.")

    strong = sum(1 for m in modules if m.score >= 80)
    weak = sum(1 for m in modules if m.score < 60)
    if strong:
        lines.append(f"{strong} of {len(modules)} checked areas are performing excellently.")
    if weak:
        lines.append(f"{_plural(weak, 'area')} {'needs' if weak == 1 else 'need'} significant improvement.")
    return lines


def top_actions(result: AuditResult) -> List[TopAction]:
    """Medium+ issues first (up to 5, unique titles); low issues only to reach 3."""
    issues = [i for m in result.modules for i in m.issues]
    chosen: List[AuditIssue] = []
    seen = set()
    for issue in issues:
        if issue.severity != Severity.LOW and issue.title not in seen and len(chosen) < MAX_TOP_ACTIONS:
            seen.add(issue.title)
            chosen.append(issue)
    if len(chosen) < MIN_TOP_ACTIONS:
        for issue in issues:
            if issue.severity == Severity.LOW and issue.title not in seen and len(chosen) < MIN_TOP_ACTIONS:
                seen.add(issue.title)
                chosen.append(issue)
    return [
        TopAction(
            title=i.title,
            why=i.plain_language_explanation or "This affects your website's performance.",
            how=i.suggested_fix or "Review and fix this issue.",
            severity=i.severity,
        )
        for i in chosen
    ]


def build_simple_report(result: AuditResult) -> NarrativeReport:
    return NarrativeReport(
        executive_summary=executive_summary(result),
        top_actions=top_actions(result),
        modules=[narrative_module(m) for m in result.modules],
    )
