# mapchat/api/interpreter.py
"""Turn a raw chat-model reply into cleaned text, an itinerary and follow-ups.

The model is asked to end every reply with two delimited sections::

    [PLACES]
    {"days":[{"key":"Day 1","periods":{"Morning":[{"options":["A"]}]}}]}
    [/PLACES]
    [FOLLOWUP]
    - Find restaurants near A
    [/FOLLOWUP]

Nothing guarantees it does.  Parsing therefore degrades step by step:
strict JSON, then the line-oriented legacy format, then bold spans under
``### Day N`` headers.  None of these steps raises to the caller.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from mapchat.api.legacy_parser import extract_bold_places, parse_lines
from mapchat.api.models import (
    Itinerary,
    ItineraryDay,
    MapAction,
    PERIOD_ORDER,
    PeriodName,
    Stop,
    map_action_to_dict,
    parse_map_action,
)

logger = logging.getLogger(__name__)

_FOLLOWUP_RE = re.compile(r"\[FOLLOWUP\]([\s\S]*?)(?:\[/FOLLOWUP\]|(?=\[PLACES\])|$)")
_PLACES_RE = re.compile(r"\[PLACES\]([\s\S]*?)(?:\[/PLACES\]|(?=\[FOLLOWUP\])|$)")
_FENCE_MARKER_RE = re.compile(r"```(?:json)?", re.I)
_FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_MAP_ACTION_LINE_RE = re.compile(r"- Map Action:[\s\S]*?(?=\n-|\n###|\n\n|$)")
_LOOSE_ACTION_RE = re.compile(r"\{[^{}]*?\"action\"[^{}]*?\}")
_RULE_LINE_RE = re.compile(r"^---+\s*$", re.M)
_BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


@dataclass
class InterpretedResponse:
    cleaned_text: str
    itinerary: Optional[Itinerary] = None
    follow_ups: List[str] = field(default_factory=list)
    map_action: Optional[MapAction] = None

    def to_dict(self) -> dict:
        return {
            "message": self.cleaned_text,
            "places": self.itinerary.to_dict() if self.itinerary else None,
            "placesByDay": self.itinerary.flat_places() if self.itinerary else None,
            "followUpSuggestions": list(self.follow_ups),
            "mapAction": map_action_to_dict(self.map_action) if self.map_action else None,
        }


# ---------------------------------------------------------------------------
# Block extraction
# ---------------------------------------------------------------------------

def extract_follow_ups(text: str) -> List[str]:
    """Lines of the [FOLLOWUP] block with bullets stripped."""
    match = _FOLLOWUP_RE.search(text or "")
    if not match:
        return []
    follow_ups = []
    for line in match.group(1).splitlines():
        line = _BULLET_PREFIX_RE.sub("", line).strip()
        if line and not line.startswith("["):
            follow_ups.append(line)
    return follow_ups


def extract_places_block(text: str) -> Optional[str]:
    match = _PLACES_RE.search(text or "")
    return match.group(1) if match else None


def strip_code_fences(text: str) -> str:
    return _FENCE_MARKER_RE.sub("", text or "").strip()


def json_payload(block: str) -> Optional[str]:
    """Substring between the first '{' and the last '}', if any."""
    body = strip_code_fences(block)
    start = body.find("{")
    end = body.rfind("}")
    if start == -1 or end <= start:
        return None
    return body[start:end + 1]


def _find_action_fragments(text: str) -> List[Tuple[int, int, Dict[str, Any]]]:
    decoder = json.JSONDecoder()
    fragments = []
    index = text.find("{")
    while index != -1:
        try:
            obj, end = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            index = text.find("{", index + 1)
            continue
        if isinstance(obj, dict) and "action" in obj:
            fragments.append((index, end, obj))
            index = text.find("{", end)
        else:
            index = text.find("{", index + 1)
    return fragments


# ---------------------------------------------------------------------------
# JSON places payload
# ---------------------------------------------------------------------------

def _clean_names(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    names: List[str] = []
    for value in values:
        if value is None:
            continue
        name = str(value).strip()
        if name and name not in names:
            names.append(name)
    return names


def _parse_stop(raw: Any) -> Optional[Stop]:
    if isinstance(raw, str):
        raw = {"options": [raw]}
    if not isinstance(raw, dict):
        return None

    raw_options = raw.get("options")
    if isinstance(raw_options, str):
        raw_options = [raw_options]
    elif not isinstance(raw_options, list):
        raw_options = []
    options = [str(v).strip() for v in raw_options if v is not None and str(v).strip()]
    if not options:
        return None

    travel_time = raw.get("travelTime")
    travel_time = str(travel_time).strip() if travel_time else None
    return Stop(options=options, optional=bool(raw.get("optional")), travel_time=travel_time or None)


def _parse_periods(raw: Any) -> Dict[PeriodName, List[Stop]]:
    if not isinstance(raw, dict):
        return {}
    by_name = {str(name).strip().lower(): stops for name, stops in raw.items()}

    periods: Dict[PeriodName, List[Stop]] = {}
    for period in PERIOD_ORDER:
        raw_stops = by_name.get(period.value.lower())
        if not isinstance(raw_stops, list):
            continue
        stops = [s for s in (_parse_stop(item) for item in raw_stops) if s is not None]
        if stops:
            periods[period] = stops
    return periods


def _parse_day(raw: Any) -> Optional[ItineraryDay]:
    if not isinstance(raw, dict):
        return None
    key = str(raw.get("key") or "").strip()
    if not key:
        logger.debug("Skipping itinerary day without a key")
        return None

    periods = _parse_periods(raw.get("periods"))
    scheduled = {name for stops in periods.values() for stop in stops for name in stop.options}
    suggested = [name for name in _clean_names(raw.get("suggested")) if name not in scheduled]

    if not periods and not suggested:
        return None
    return ItineraryDay(key=key, periods=periods, suggested=suggested)


def itinerary_from_payload(payload: Any) -> Optional[Itinerary]:
    """Validate a decoded places payload; None if it has neither shape."""
    if not isinstance(payload, dict):
        return None

    if isinstance(payload.get("days"), list):
        days: List[ItineraryDay] = []
        seen = set()
        for raw_day in payload["days"]:
            day = _parse_day(raw_day)
            if day is None:
                continue
            if day.key in seen:
                logger.warning("Duplicate itinerary day %r dropped", day.key)
                continue
            seen.add(day.key)
            days.append(day)
        if days:
            return Itinerary(days=days)

    suggested = _clean_names(payload.get("suggested"))
    if suggested:
        return Itinerary(suggested=suggested)
    return None


def to_places_block(itinerary: Itinerary) -> str:
    """Serialize an itinerary back into the [PLACES] block contract."""
    payload = json.dumps(itinerary.to_dict(), ensure_ascii=False, separators=(",", ":"))
    return f"[PLACES]\n{payload}\n[/PLACES]"


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

class ResponseInterpreter:
    """Parses one model response at a time; holds no state between calls."""

    def interpret(self, raw_text: str) -> InterpretedResponse:
        text = raw_text or ""

        follow_ups = extract_follow_ups(text)
        map_action = self.extract_map_action(text)
        cleaned = self.clean_text(text)

        itinerary = None
        block = extract_places_block(text)
        if block is not None:
            itinerary = self._parse_places_block(block)
        if itinerary is None:
            itinerary = parse_lines(cleaned)
        if itinerary is None:
            itinerary = extract_bold_places(cleaned)

        return InterpretedResponse(
            cleaned_text=cleaned,
            itinerary=itinerary,
            follow_ups=follow_ups,
            map_action=map_action,
        )

    def _parse_places_block(self, block: str) -> Optional[Itinerary]:
        payload_text = json_payload(block)
        if payload_text is not None:
            try:
                itinerary = itinerary_from_payload(json.loads(payload_text))
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed places JSON, using line parser: {e}")
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Unexpected places payload shape: {e}")
            else:
                if itinerary is not None:
                    return itinerary
                logger.debug("Places JSON had neither days nor suggested")

        return parse_lines(strip_code_fences(block))

    @staticmethod
    def extract_map_action(text: str) -> Optional[MapAction]:
        """First inline JSON object carrying an "action" key, as a typed action."""
        outside = _PLACES_RE.sub("", _FOLLOWUP_RE.sub("", text or ""))
        for _, _, obj in _find_action_fragments(outside):
            action = parse_map_action(obj)
            if action is not None:
                return action
            logger.debug(f"Ignoring unusable map action: {obj}")
        return None

    @staticmethod
    def clean_text(text: str) -> str:
        """Strip the places and follow-up blocks, code fences and action JSON."""
        cleaned = _FOLLOWUP_RE.sub("", text or "")
        cleaned = _PLACES_RE.sub("", cleaned)
        cleaned = _FENCED_BLOCK_RE.sub("", cleaned)
        cleaned = _MAP_ACTION_LINE_RE.sub("", cleaned)

        for start, end, _ in reversed(_find_action_fragments(cleaned)):
            cleaned = cleaned[:start] + cleaned[end:]
        cleaned = _LOOSE_ACTION_RE.sub("", cleaned)

        cleaned = _RULE_LINE_RE.sub("", cleaned)
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()


_default_interpreter = ResponseInterpreter()


def interpret(raw_text: str) -> InterpretedResponse:
    """Interpret a reply with the shared stateless interpreter."""
    return _default_interpreter.interpret(raw_text)


__all__ = [
    "InterpretedResponse",
    "ResponseInterpreter",
    "interpret",
    "itinerary_from_payload",
    "to_places_block",
]
