from __future__ import annotations

"""
Response parsers for the guide roles (non-LLM).

Each role has two separate paths:
- a **strict** parser that enforces the JSON schema and raises `ResponseFormatError`
- a **fallback** that produces a safe local default from the raw text

Fallbacks only ever handle format problems. Transport failures are raised by the
capability layer as `GuideError`s and never pass through here.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .errors import ResponseFormatError
from .schemas import MesoGoal, MicroInstruction, WatcherResult

logger = logging.getLogger(__name__)

FALLBACK_SUCCESS_CRITERIA = "User confirms step is complete"
HEURISTIC_REASONING = "Parsed from raw response (keyword heuristic, low confidence)"

_MULTISPACE_RE = re.compile(r"\s+")
_VERDICT_KEY_RE = re.compile(r"\bis_complete\b")
_POSITIVE_FRAGMENT_RE = re.compile(r"['\"]?\bis_complete['\"]?\s*[:=]\s*['\"]?(true|yes|1)\b")
_NEGATIVE_FRAGMENT_RE = re.compile(r"['\"]?\bis_complete['\"]?\s*[:=]\s*['\"]?(false|no|0|none|null)\b")
_NEGATIVE_PHRASE_RE = re.compile(r"\bnot\s+(yet\s+)?(complete|completed|done)\b|\bincomplete\b")
_COMPLETE_WORD_RE = re.compile(r"\bcompleted?\b")


def extract_json_text(text: str) -> str:
    """Slice the outermost JSON object (or, failing that, array) out of chatty model text."""
    if not text:
        return ""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _load(text: str, raw: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ResponseFormatError(f"invalid JSON: {e}", raw=raw) from e


def _goals_from_list(items: Any, raw: str) -> List[MesoGoal]:
    if not isinstance(items, list):
        raise ResponseFormatError("goals must be a list", raw=raw)
    goals = []
    for item in items:
        if not isinstance(item, dict):
            raise ResponseFormatError("goal entries must be objects", raw=raw)
        try:
            goals.append(MesoGoal.from_json(item))
        except ValueError as e:
            raise ResponseFormatError(f"bad goal entry: {e}", raw=raw) from e
    return goals


# ---------------------------------------------------------------- planner


def parse_planner_strict(text: str) -> List[MesoGoal]:
    """`{"goals": [{"id", "title", "description"}, ...]}`"""
    obj = _load(extract_json_text(text), text)
    if not isinstance(obj, dict) or "goals" not in obj:
        raise ResponseFormatError("expected an object with a 'goals' key", raw=text)
    return _goals_from_list(obj["goals"], text)


def parse_planner_bare_array(text: str) -> List[MesoGoal]:
    """`[{"id", "title", "description"}, ...]` without the wrapping object."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise ResponseFormatError("no JSON array found", raw=text)
    return _goals_from_list(_load(text[start : end + 1], text), text)


def renumber_goals(goals: List[MesoGoal]) -> List[MesoGoal]:
    """Keep model order; reassign ids 1..n so the sequence has no gaps or duplicates."""
    expected = list(range(1, len(goals) + 1))
    if [g.id for g in goals] != expected:
        logger.info("[Planner] Renumbering goal ids %s -> %s", [g.id for g in goals], expected)
    for new_id, goal in zip(expected, goals):
        goal.id = new_id
    return goals


# ---------------------------------------------------------------- navigator


def _string_map(value: Any, raw: str) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ResponseFormatError("memory_to_save must be an object", raw=raw)
    return {str(k): str(v) for k, v in value.items() if v is not None}


def parse_navigator_strict(text: str) -> MicroInstruction:
    obj = _load(extract_json_text(text), text)
    if not isinstance(obj, dict):
        raise ResponseFormatError("expected a JSON object", raw=text)

    instruction = obj.get("instruction")
    criteria = obj.get("success_criteria")
    if not isinstance(instruction, str) or not instruction.strip():
        raise ResponseFormatError("missing instruction", raw=text)
    if not isinstance(criteria, str) or not criteria.strip():
        raise ResponseFormatError("missing success_criteria", raw=text)

    raw_copy = obj.get("value_to_copy")
    if isinstance(raw_copy, (dict, list)):
        raise ResponseFormatError("value_to_copy must be a scalar", raw=text)
    value_to_copy = str(raw_copy).strip() if raw_copy is not None else None

    return MicroInstruction(
        instruction=_MULTISPACE_RE.sub(" ", instruction.strip()),
        success_criteria=criteria.strip(),
        memory_to_save=_string_map(obj.get("memory_to_save"), text),
        value_to_copy=value_to_copy or None,
    )


def navigator_fallback(raw: str) -> MicroInstruction:
    """Show the raw model text as the instruction and let the user confirm completion."""
    return MicroInstruction(instruction=(raw or "").strip(), success_criteria=FALLBACK_SUCCESS_CRITERIA)


# ---------------------------------------------------------------- watcher


def _as_bool(value: Any, raw: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "y"):
            return True
        if lowered in ("false", "0", "no", "n"):
            return False
    raise ResponseFormatError(f"is_complete is not a boolean: {value!r}", raw=raw)


def parse_watcher_strict(text: str) -> WatcherResult:
    obj = _load(extract_json_text(text), text)
    if not isinstance(obj, dict) or "is_complete" not in obj:
        raise ResponseFormatError("expected an object with 'is_complete'", raw=text)
    return WatcherResult(
        is_complete=_as_bool(obj["is_complete"], text),
        reasoning=str(obj.get("reasoning", "") or ""),
    )


def watcher_heuristic(raw: str) -> WatcherResult:
    """
    Lower-confidence approximation used only when the strict schema fails.

    Order: `is_complete` fragments first (JSON or Python literals, either quote
    style), then negative phrases, then the bare word "complete" outside the
    key name. Anything else is treated as not complete.
    """
    lowered = (raw or "").lower()
    if _POSITIVE_FRAGMENT_RE.search(lowered):
        verdict = True
    elif _NEGATIVE_FRAGMENT_RE.search(lowered):
        verdict = False
    else:
        prose = _VERDICT_KEY_RE.sub(" ", lowered)
        if _NEGATIVE_PHRASE_RE.search(prose):
            verdict = False
        else:
            verdict = bool(_COMPLETE_WORD_RE.search(prose))
    return WatcherResult(is_complete=verdict, reasoning=HEURISTIC_REASONING, heuristic=True)


# ---------------------------------------------------------------- summarizer


def clean_summary(text: str) -> str:
    """Trim and fold the summary onto one line."""
    line = _MULTISPACE_RE.sub(" ", (text or "").strip())
    if len(line) >= 2 and line[0] == line[-1] and line[0] in "\"'":
        line = line[1:-1].strip()
    return line
