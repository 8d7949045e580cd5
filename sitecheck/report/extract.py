"""
Best-effort extraction of one JSON object from free-form model output.

The strategies below are tried in order and the list is closed: a reply
that none of them can read is a SynthesisError, not a prompt for another
special case. Model output format is not guaranteed by the provider.
"""
import json
import re
from typing import Any, Callable, Dict, Optional, Tuple

from ..errors import SynthesisError

_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")
_FENCED = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)```")
_PREFIX = re.compile(
    r"(?:here(?:'|’)?s|here\s+is|below\s+is)\s+(?:the|your)\s+(?:[\w-]+\s+){0,3}?report\s*:?",
    re.IGNORECASE,
)
_decoder = json.JSONDecoder()


def _as_object(raw: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def from_direct(text: str) -> Optional[Dict[str, Any]]:
    found = _as_object(text.strip())
    if found is not None:
        return found
    m = _GREEDY_OBJECT.search(text)
    return _as_object(m.group(0)) if m else None


def from_fenced_block(text: str) -> Optional[Dict[str, Any]]:
    for m in _FENCED.finditer(text):
        found = _as_object(m.group(1).strip())
        if found is not None:
            return found
    return None


def from_prefixed(text: str) -> Optional[Dict[str, Any]]:
    m = _PREFIX.search(text)
    if not m:
        return None
    rest = text[m.end():]
    start = rest.find("{")
    if start < 0:
        return None
    try:
        value, _ = _decoder.raw_decode(rest, start)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


STRATEGIES: Tuple[Tuple[str, Callable[[str], Optional[Dict[str, Any]]]], ...] = (
    ("direct", from_direct),
    ("fenced", from_fenced_block),
    ("prefixed", from_prefixed),
)


def extract_json_object(text: str) -> Tuple[Dict[str, Any], str]:
    """Returns (object, name of the strategy that found it)."""
    if not text or not text.strip():
        raise SynthesisError("Empty response from text generator")
    for name, strategy in STRATEGIES:
        found = strategy(text)
        if found is not None:
            return found, name
    raise SynthesisError(f"Could not find a JSON object in model response ({len(text)} chars)")
