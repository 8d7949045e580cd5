from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ModuleKey(str, Enum):
    PERFORMANCE = "performance"
    CRAWL_HEALTH = "crawl_health"
    ON_PAGE = "on_page"
    MOBILE = "mobile"
    LOCAL = "local"
    ACCESSIBILITY = "accessibility"
    SECURITY = "security"
    SCHEMA = "schema"
    SOCIAL = "social"
    COMPETITOR_OVERVIEW = "competitor_overview"


DISPLAY_NAMES: Mapping[ModuleKey, str] = {
    ModuleKey.PERFORMANCE: "Performance",
    ModuleKey.CRAWL_HEALTH: "Crawl Health",
    ModuleKey.ON_PAGE: "On-Page SEO",
    ModuleKey.MOBILE: "Mobile Optimization",
    ModuleKey.LOCAL: "Local SEO",
    ModuleKey.ACCESSIBILITY: "Accessibility",
    ModuleKey.SECURITY: "Security",
    ModuleKey.SCHEMA: "Schema Markup",
    ModuleKey.SOCIAL: "Social Metadata",
    ModuleKey.COMPETITOR_OVERVIEW: "Competitor Overview",
}

_missing_names = set(ModuleKey) - set(DISPLAY_NAMES)
if _missing_names:
    raise RuntimeError(f"Modules without a display name: {sorted(k.value for k in _missing_names)}")


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AuditStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    GENERATING_REPORT = "generating_report"
    COMPLETED = "completed"
    FAILED = "failed"


# Re-entering running (and failed -> running) lets a retried audit converge.
ALLOWED_TRANSITIONS: Mapping[AuditStatus, FrozenSet[AuditStatus]] = {
    AuditStatus.PENDING: frozenset({AuditStatus.RUNNING, AuditStatus.FAILED}),
    AuditStatus.RUNNING: frozenset({AuditStatus.RUNNING, AuditStatus.GENERATING_REPORT, AuditStatus.FAILED}),
    AuditStatus.GENERATING_REPORT: frozenset({AuditStatus.RUNNING, AuditStatus.COMPLETED, AuditStatus.FAILED}),
    AuditStatus.COMPLETED: frozenset({AuditStatus.FAILED}),
    AuditStatus.FAILED: frozenset({AuditStatus.RUNNING, AuditStatus.FAILED}),
}


def can_transition(current: AuditStatus, target: AuditStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ── CHECK RESULTS ────────────────────────────────────────────────────────────

class AuditIssue(CamelModel):
    model_config = ConfigDict(frozen=True)

    title: str
    severity: Severity
    technical_explanation: str
    plain_language_explanation: str
    suggested_fix: str
    evidence: Optional[Dict[str, Any]] = None


class ModuleResult(CamelModel):
    model_config = ConfigDict(frozen=True)

    module_key: ModuleKey
    score: int = Field(ge=0, le=100)
    issues: List[AuditIssue] = Field(default_factory=list)
    summary: str
    evidence: Dict[str, Any] = Field(default_factory=dict)


class PageAnalysis(CamelModel):
    url: str
    final_url: str
    http_status: int
    content_type: str
    page_size: Optional[str] = None
    has_redirect: bool = False
    is_https: bool = False
    title: Optional[str] = None
    meta_description: Optional[str] = None
    h1_text: Optional[str] = None
    h1_count: int = 0
    h2_count: int = 0
    word_count: int = 0
    total_images: int = 0
    missing_alt_text: int = 0
    internal_links: int = 0
    external_links: int = 0
    is_indexable: bool = True


class AuditResult(CamelModel):
    url: str
    page_analysis: PageAnalysis
    modules: List[ModuleResult]
    overall_score: int = Field(ge=0, le=100)

    def module(self, key: ModuleKey) -> Optional[ModuleResult]:
        for result in self.modules:
            if result.module_key == key:
                return result
        return None


# ── NARRATIVE REPORT ─────────────────────────────────────────────────────────

def _lenient_severity(value: Any) -> str:
    if isinstance(value, Severity):
        return value.value
    text = str(value or "").strip().lower()
    return text if text in {s.value for s in Severity} else Severity.MEDIUM.value


class NarrativeIssue(CamelModel):
    title: str
    severity: Severity = Severity.MEDIUM
    why: str = ""
    how: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v):
        return _lenient_severity(v)


class TopAction(CamelModel):
    title: str
    why: str = ""
    how: str = ""
    severity: Optional[Severity] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v):
        return None if v is None else _lenient_severity(v)


class NarrativeModule(CamelModel):
    module_name: str
    overview: str = ""
    issues: List[NarrativeIssue] = Field(default_factory=list)

    @field_validator("issues", mode="before")
    @classmethod
    def _issues(cls, v):
        return v or []


class NarrativeReport(CamelModel):
    executive_summary: List[str] = Field(default_factory=list)
    top_actions: List[TopAction] = Field(default_factory=list)
    modules: List[NarrativeModule] = Field(default_factory=list)

    @field_validator("executive_summary", mode="before")
    @classmethod
    def _summary(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v]

    @field_validator("top_actions", "modules", mode="before")
    @classmethod
    def _lists(cls, v):
        return v or []

    def module_names(self) -> List[str]:
        return [m.module_name for m in self.modules]


# ── FAILURE LOG ──────────────────────────────────────────────────────────────

class ErrorEnvelope(CamelModel):
    error_name: str
    error_message: str
    error_stack: Optional[str] = None
    timestamp: str
    audit_id: str
    url: Optional[str] = None
    stage: str
    has_raw_results: bool = False
    has_formatted_report: bool = False
    module_count: int = 0
