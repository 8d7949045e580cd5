import asyncio
import json

import pytest

from sitecheck.errors import SynthesisError
from sitecheck.report.simple import ALL_CHECKS_PASSED, build_simple_report, top_actions
from sitecheck.report.synthesizer import Synthesizer, build_messages, build_synthesizer, ensure_complete
from sitecheck.schemas import (
    AuditIssue,
    AuditResult,
    ModuleKey,
    ModuleResult,
    NarrativeModule,
    NarrativeReport,
    PageAnalysis,
    Severity,
)

pytestmark = pytest.mark.anyio


def issue(title, severity=Severity.MEDIUM):
    return AuditIssue(
        title=title,
        severity=severity,
        technical_explanation=f"{title} (technical)",
        plain_language_explanation=f"Why {title.lower()} matters",
        suggested_fix=f"Fix {title.lower()}",
    )


def audit_result(*modules):
    scores = [m.score for m in modules]
    return AuditResult(
        url="https://acme.example/",
        page_analysis=PageAnalysis(
            url="https://acme.example/", final_url="https://acme.example/", http_status=200, content_type="text/html",
        ),
        modules=list(modules),
        overall_score=round(sum(scores) / len(scores)) if scores else 0,
    )


ON_PAGE = ModuleResult(
    module_key=ModuleKey.ON_PAGE, score=80, summary="On-page summary",
    issues=[issue("Page title is too short")],
)
MOBILE = ModuleResult(
    module_key=ModuleKey.MOBILE, score=70, summary="Mobile summary",
    issues=[issue("Missing mobile viewport setting", Severity.HIGH)],
)
SECURITY_CLEAN = ModuleResult(module_key=ModuleKey.SECURITY, score=100, summary="Security summary")

MODEL_REPLY = {
    "executiveSummary": "Your site is mostly healthy.",
    "topActions": [{"title": "Lengthen your title", "why": "w", "how": "h", "severity": "HIGH"}],
    "modules": [
        {"moduleName": "on-page seo", "overview": "Titles need work.",
         "issues": [{"title": "Short title", "severity": "critical", "why": "w", "how": "h"}]},
        {"moduleName": "Blog Strategy", "overview": "Not purchased", "issues": []},
        {"moduleName": "On-Page SEO", "overview": "Duplicate", "issues": None},
    ],
}


class FakeGenerator:
    def __init__(self, reply="", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def generate(self, messages, *, temperature):
        self.calls.append((list(messages), temperature))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


async def test_missing_module_is_rebuilt_from_check_results(settings):
    reply = "Here's the report you asked for:\n```json\n" + json.dumps(MODEL_REPLY) + "\n```"
    generator = FakeGenerator(reply)
    report = await Synthesizer(generator, settings).synthesize(
        audit_result(ON_PAGE, MOBILE), [ModuleKey.ON_PAGE, ModuleKey.MOBILE]
    )

    assert report.module_names() == ["On-Page SEO", "Mobile Optimization"]
    on_page, mobile = report.modules
    assert on_page.overview == "Titles need work."
    assert on_page.issues[0].severity == Severity.MEDIUM
    assert mobile.overview == "Mobile summary"
    assert [i.title for i in mobile.issues] == ["Missing mobile viewport setting"]
    assert mobile.issues[0].severity == Severity.HIGH
    assert report.executive_summary == ["Your site is mostly healthy."]
    assert report.top_actions[0].severity == Severity.HIGH
    assert generator.calls[0][1] == settings.LLM_TEMPERATURE


async def test_clean_module_gets_placeholder_issue(settings):
    reply = json.dumps({"executiveSummary": [], "modules": []})
    report = await Synthesizer(FakeGenerator(reply), settings).synthesize(
        audit_result(SECURITY_CLEAN), [ModuleKey.SECURITY]
    )
    assert report.module_names() == ["Security"]
    assert report.modules[0].issues == [ALL_CHECKS_PASSED]


async def test_generation_timeout(settings):
    fast = settings.model_copy(update={"LLM_TIMEOUT": 0.05})
    synthesizer = Synthesizer(FakeGenerator("{}", delay=1), fast)
    with pytest.raises(SynthesisError, match="timed out"):
        await synthesizer.synthesize(audit_result(ON_PAGE), [ModuleKey.ON_PAGE])


async def test_generator_failure_becomes_synthesis_error(settings):
    synthesizer = Synthesizer(FakeGenerator(error=RuntimeError("quota exceeded")), settings)
    with pytest.raises(SynthesisError, match="quota exceeded"):
        await synthesizer.synthesize(audit_result(ON_PAGE), [ModuleKey.ON_PAGE])


async def test_unparsable_reply(settings):
    synthesizer = Synthesizer(FakeGenerator("I'm sorry, I can't help with that."), settings)
    with pytest.raises(SynthesisError):
        await synthesizer.synthesize(audit_result(ON_PAGE), [ModuleKey.ON_PAGE])


async def test_reply_with_wrong_shape(settings):
    synthesizer = Synthesizer(FakeGenerator(json.dumps({"modules": "nope"})), settings)
    with pytest.raises(SynthesisError, match="report shape"):
        await synthesizer.synthesize(audit_result(ON_PAGE), [ModuleKey.ON_PAGE])


async def test_simple_mode_needs_no_generator(settings):
    synthesizer = build_synthesizer(settings)
    assert synthesizer.generator is None

    report = await synthesizer.synthesize(
        audit_result(ON_PAGE, MOBILE, SECURITY_CLEAN),
        [ModuleKey.ON_PAGE, ModuleKey.MOBILE, ModuleKey.SECURITY],
    )
    assert report.module_names() == ["On-Page SEO", "Mobile Optimization", "Security"]
    assert report.executive_summary[0].startswith("Your website is in good overall health")
    assert "We checked 3 areas of your website." in report.executive_summary


def test_ensure_complete_needs_a_result_for_every_purchased_module():
    report = NarrativeReport(modules=[NarrativeModule(module_name="On-Page SEO")])
    with pytest.raises(SynthesisError, match="social"):
        ensure_complete(report, [ON_PAGE], [ModuleKey.ON_PAGE, ModuleKey.SOCIAL])


def test_prompt_names_every_purchased_module():
    messages = build_messages(audit_result(ON_PAGE, MOBILE), [ModuleKey.ON_PAGE, ModuleKey.MOBILE])
    assert messages[0].role == "system"
    prompt = messages[1].content
    assert "   - On-Page SEO" in prompt
    assert "   - Mobile Optimization" in prompt
    assert "technicalExplanation" in prompt
    assert "evidence" not in prompt


def test_top_actions_prefer_higher_severity():
    low = ModuleResult(
        module_key=ModuleKey.SOCIAL, score=90, summary="s",
        issues=[issue("Missing Twitter Card tags", Severity.LOW), issue("No social media profiles linked", Severity.LOW)],
    )
    actions = top_actions(audit_result(low, MOBILE))
    assert [a.title for a in actions] == [
        "Missing mobile viewport setting",
        "Missing Twitter Card tags",
        "No social media profiles linked",
    ]


def test_simple_report_for_a_clean_site():
    report = build_simple_report(audit_result(SECURITY_CLEAN))
    assert "No issues found! Your site is performing well across all checked areas." in report.executive_summary
    assert report.top_actions == []
