from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...schemas import AuditIssue, ModuleKey, ModuleResult, Severity
from ...settings import Settings


@dataclass
class CheckContext:
    """Everything a check may need besides the snapshot itself."""
    client: httpx.AsyncClient
    settings: Settings
    competitor_url: Optional[str] = None


def _clamp(v: float, lo: int = 0, hi: int = 100) -> int:
    return int(max(lo, min(hi, v)))


def strip_empty(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None and empty containers/strings; keep 0 and False."""
    if not values:
        return {}
    return {
        k: v for k, v in values.items()
        if v is not None and not (isinstance(v, (str, list, tuple, dict, set)) and len(v) == 0)
    }


class Findings:
    """
    Accumulates issues for one module. Score starts at 100, every issue
    subtracts its penalty, and the result is clamped to [0, 100].
    """

    def __init__(self, module_key: ModuleKey, start: int = 100):
        self.module_key = module_key
        self.score = start
        self.issues: List[AuditIssue] = []

    def add(
        self,
        title: str,
        severity: Severity,
        technical: str,
        plain: str,
        fix: str,
        *,
        penalty: int = 0,
        evidence: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.issues.append(AuditIssue(
            title=title,
            severity=severity,
            technical_explanation=technical,
            plain_language_explanation=plain,
            suggested_fix=fix,
            evidence=strip_empty(evidence) or None,
        ))
        self.score -= penalty

    @property
    def clamped(self) -> int:
        return _clamp(self.score)

    def result(self, summaries: Tuple[str, str, str], evidence: Optional[Dict[str, Any]] = None) -> ModuleResult:
        """summaries = (>=80, 60-79, <60)"""
        score = self.clamped
        good, fair, poor = summaries
        summary = good if score >= 80 else fair if score >= 60 else poor
        return ModuleResult(
            module_key=self.module_key,
            score=score,
            issues=list(self.issues),
            summary=summary,
            evidence=strip_empty(evidence),
        )


def inline_style(tag) -> str:
    return (tag.get("style") or "").replace(" ", "").lower()


def class_list(tag) -> List[str]:
    raw = tag.get("class") or []
    if isinstance(raw, str):
        raw = raw.split()
    return [c.lower() for c in raw]


def images_missing_alt(document) -> Tuple[int, int]:
    """
    (total real images, images with no alt attribute). Data-URI images are
    ignored; alt="" and role=presentation/none mark decorative images.
    """
    total = 0
    missing = 0
    for img in document.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        total += 1
        if img.get("alt") is not None:
            continue
        if (img.get("role") or "").strip().lower() in ("presentation", "none"):
            continue
        missing += 1
    return total, missing
