# sitecheck/report/synthesizer.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..errors import SynthesisError
from ..schemas import DISPLAY_NAMES, AuditResult, ModuleKey, ModuleResult, NarrativeReport
from ..services.ai_service import ChatMessage, GeminiTextGenerator, TextGenerator
from ..settings import Settings, get_settings
from .extract import extract_json_object
from .simple import build_simple_report, narrative_module

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a friendly SEO consultant who writes clear, actionable reports for "
    "non-technical business owners. Always respond with valid JSON only."
)

REPORT_SHAPE = """{
  "executiveSummary": ["bullet point 1", "bullet point 2"],
  "topActions": [
    {"title": "Fix title", "why": "Why this matters", "how": "Step-by-step instructions", "severity": "high/medium/low"}
  ],
  "modules": [
    {
      "moduleName": "Performance",
      "overview": "One sentence overview",
      "issues": [
        {"title": "Plain language title", "severity": "high/medium/low", "why": "Why this matters", "how": "How to fix it"}
      ]
    }
  ]
}"""


# ============================================================
# Prompt
# ============================================================

def trim_for_prompt(result: ModuleResult) -> Dict[str, Any]:
    """Module result without evidence maps; the model only needs the findings."""
    return {
        "moduleKey": result.module_key.value,
        "moduleName": DISPLAY_NAMES[result.module_key],
        "score": result.score,
        "summary": result.summary,
        "issues": [
            {
                "title": i.title,
                "severity": i.severity.value,
                "technicalExplanation": i.technical_explanation,
                "plainLanguageExplanation": i.plain_language_explanation,
                "suggestedFix": i.suggested_fix,
            }
            for i in result.issues
        ],
    }


def build_messages(result: AuditResult, purchased: Sequence[ModuleKey]) -> List[ChatMessage]:
    names = [DISPLAY_NAMES[k] for k in purchased]
    payload = json.dumps([trim_for_prompt(m) for m in result.modules], indent=2)
    prompt = f"""You write clear, plain language SEO reports for non-technical business owners.

Website URL: {result.url}
Overall score: {result.overall_score}/100

Audit Results:
{payload}

Write a comprehensive SEO report with these requirements:

1. Executive Summary (3-5 bullet points): overall health, main strengths and weaknesses, priority actions.
2. "Start Here" section: the top 5 most important fixes, why each matters, simple step-by-step instructions.
3. One section per module, for EVERY one of these modules, using exactly these names:
{chr(10).join(f"   - {n}" for n in names)}
   Each section has a one sentence overview and 3-7 key issues (High, Medium, Low),
   each with a plain language title, "why this matters" and "how to fix it".

Constraints:
- Avoid SEO jargon. If you must use technical terms, explain them simply.
- Use short sentences. Be encouraging and actionable.
- Do not add modules that are not in the list above.

Respond with JSON in this format:
{REPORT_SHAPE}"""
    return [ChatMessage("system", SYSTEM_PROMPT), ChatMessage("user", prompt)]


# ============================================================
# Completeness repair
# ============================================================

def canonical_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def ensure_complete(
    report: NarrativeReport, results: Sequence[ModuleResult], purchased: Sequence[ModuleKey]
) -> NarrativeReport:
    """
    Make report.modules hold exactly one entry per purchased module, in place.
    Names are matched case/punctuation-insensitively and rewritten to the
    display name; unknown and duplicate entries are dropped; missing ones
    are rebuilt from their check result and appended.
    """
    by_name = {canonical_name(DISPLAY_NAMES[k]): k for k in purchased}
    by_key = {r.module_key: r for r in results}

    kept = []
    seen = set()
    for module in report.modules:
        key = by_name.get(canonical_name(module.module_name))
        if key is None or key in seen:
            logger.info("Dropping narrative section %r", module.module_name)
            continue
        module.module_name = DISPLAY_NAMES[key]
        seen.add(key)
        kept.append(module)

    for key in purchased:
        if key in seen:
            continue
        result = by_key.get(key)
        if result is None:
            raise SynthesisError(f"No check result available for purchased module {key.value}")
        logger.warning("Narrative missing %s; rebuilding it from check results", DISPLAY_NAMES[key])
        kept.append(narrative_module(result))
        seen.add(key)

    report.modules = kept

    expected = {DISPLAY_NAMES[k] for k in purchased}
    actual = report.module_names()
    if len(actual) != len(expected) or set(actual) != expected:
        raise SynthesisError(
            f"Report modules {sorted(actual)} do not match purchased modules {sorted(expected)}"
        )
    return report


# ============================================================
# Synthesizer
# ============================================================

class Synthesizer:
    """
    Turns an AuditResult into a NarrativeReport. With a text generator the
    prose comes from the model; without one it is built from the results.
    Either way every purchased module is guaranteed to be present.
    """

    def __init__(self, generator: Optional[TextGenerator] = None, settings: Optional[Settings] = None):
        self.generator = generator
        self.settings = settings or get_settings()

    async def synthesize(self, result: AuditResult, purchased: Sequence[ModuleKey]) -> NarrativeReport:
        purchased = list(dict.fromkeys(ModuleKey(k) for k in purchased))
        if self.generator is None:
            report = build_simple_report(result)
        else:
            report = await self._generate(result, purchased)
        return ensure_complete(report, result.modules, purchased)

    async def _generate(self, result: AuditResult, purchased: Sequence[ModuleKey]) -> NarrativeReport:
        timeout = self.settings.LLM_TIMEOUT
        messages = build_messages(result, purchased)
        try:
            text = await asyncio.wait_for(
                self.generator.generate(messages, temperature=self.settings.LLM_TEMPERATURE),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise SynthesisError(f"Text generation timed out after {timeout:g}s") from e
        except SynthesisError:
            raise
        except Exception as e:
            raise SynthesisError(f"Text generation failed: {e}") from e

        data, strategy = extract_json_object(text)
        logger.info("Parsed narrative report using %s extraction", strategy)
        try:
            return NarrativeReport.model_validate(data)
        except ValidationError as e:
            raise SynthesisError(f"Model response did not match the report shape: {e}") from e


def build_synthesizer(settings: Optional[Settings] = None) -> Synthesizer:
    settings = settings or get_settings()
    generator = GeminiTextGenerator(settings) if settings.llm_enabled else None
    return Synthesizer(generator, settings)
