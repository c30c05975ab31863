# mapchat/api/legacy_parser.py
"""Line-oriented fallback parser for itineraries without a JSON places block.

Older model replies (and replies that ignore the JSON contract) describe
places as plain lines::

    Day 1 Morning: Colosseum Rome Italy, Roman Forum Rome Italy
    Alternative: Palatine Hill Rome Italy
    Day 3 Option A Evening: Dinner at Roscioli, or Da Enzo
    Day 2: Vatican Museums Rome Italy | St Peters Basilica Rome Italy
    Suggested: Hotel Artemide Rome Italy, Hotel de Russie Rome Italy

Each line is classified by an ordered table of pure rules (first match
wins) and a single dispatcher applies the match to the parse state.  When
no line matches at all, ``extract_bold_places`` pulls ``**bold**`` spans
out of ``### Day N`` sections instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from mapchat.api.models import Itinerary, ItineraryDay, PeriodName, PERIOD_ORDER, Stop

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_PERIODS = "|".join(period.value for period in PERIOD_ORDER)

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_ALTERNATIVE_RE = re.compile(r"^\s*(?:alternative|alt|option)\s*:\s*(.*)$", re.I)
_DAY_OPTION_PERIOD_RE = re.compile(
    rf"^Day\s*(\d+)\s*\(?\s*Option\s*([A-Za-z0-9]+)\s*\)?\s*[-–:]?\s*({_PERIODS})\s*:\s*(.*)$", re.I
)
_DAY_PERIOD_RE = re.compile(rf"^Day\s*(\d+)\s*[-–:]?\s*({_PERIODS})\s*:\s*(.*)$", re.I)
_DAY_RE = re.compile(r"^Day\s*(\d+)\s*:\s*(.*)$", re.I)
_SUGGESTED_RE = re.compile(r"^Suggested\s*:\s*(.*)$", re.I)

_NON_PLACE_RES = [
    re.compile(r"^(travel time|tip:|tips:|note:|practical tip|book\b|reservations?\b)", re.I),
    re.compile(r"^\d+[-–]\d+\s*(min|hour|km|m\b)", re.I),
    re.compile(r"^(metro|bus|walk|train)\s*(from|to)", re.I),
]

_OPTIONAL_RE = re.compile(r"^[-–]?\s*optional\s*[:\-]\s*", re.I)
_ALT_PREFIX_RE = re.compile(r"^\s*(alternative|alternatively|alt|option)[,:\-]\s*", re.I)

_HAS_OR_RE = re.compile(r",?\s+or\s+", re.I)
_AT_OR_RE = re.compile(r"^(.+?)\s+at\s+(.+?),?\s+or\s+(.+)$", re.I)
_AREA_OR_RE = re.compile(r"^(.+?)\s+(?:in|at)\s+(?:the\s+)?(.+?)\s+area[:\s]+(.+?),?\s+or\s+(.+)$", re.I)

# Commas separate sibling places, except the comma in "X, or Y"
_ITEM_SPLIT_RE = re.compile(r",(?!\s*or\s)", re.I)

_DAY_HEADER_RE = re.compile(r"###\s*Day\s*(\d+)[^\n]*", re.I)
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_RESERVED_LABEL_RE = re.compile(
    r"^(Morning|Afternoon|Evening|Tip|Travel|Note|Cuisine|Highlights|Distance)", re.I
)

SUGGESTED_DAY_KEY = "Suggested"


# ---------------------------------------------------------------------------
# Item helpers (pure)
# ---------------------------------------------------------------------------

def clean_symbols(text: str) -> str:
    """Normalize quotes and whitespace."""
    text = re.sub(r"[‘’`]+", "'", text)
    text = re.sub(r"[“”]|&quot;", '"', text)
    return re.sub(r"\s+", " ", text).strip()


def is_non_place(text: str) -> bool:
    """True for travel info, tips and notes that are not visitable places."""
    return any(pattern.search(text) for pattern in _NON_PLACE_RES)


def split_items(content: str) -> List[str]:
    return [item.strip() for item in _ITEM_SPLIT_RE.split(content) if item.strip()]


def split_alternatives(text: str) -> List[str]:
    """Split one slot into mutually exclusive alternatives.

    "Dinner in the Trastevere area: Roscioli, or Da Enzo" and
    "Dinner at Roscioli, or Da Enzo" both become
    ["Dinner at Roscioli", "Dinner at Da Enzo"]; a bare "X or Y" splits on
    the "or"; otherwise pipes separate alternatives.
    """
    if _HAS_OR_RE.search(text):
        area_match = _AREA_OR_RE.match(text)
        if area_match:
            prefix, _, first, second = area_match.groups()
            return [f"{prefix} at {first}".strip(), f"{prefix} at {second}".strip()]

        at_match = _AT_OR_RE.match(text)
        if at_match:
            prefix, first, second = at_match.groups()
            return [f"{prefix} at {first}".strip(), f"{prefix} at {second}".strip()]

        return [part.strip() for part in _HAS_OR_RE.split(text) if part.strip()]

    return [part.strip() for part in text.split("|") if part.strip()]


def build_stops(items: List[str]) -> List[Stop]:
    """Turn the raw items of one period into stops.

    "Optional:" marks a stop optional; an "Alternative:" item adds its
    places to the previous stop's options instead of starting a new one.
    """
    stops: List[Stop] = []
    for raw in items:
        trimmed = clean_symbols(raw or "").replace("**", "").strip()
        if not trimmed or is_non_place(trimmed):
            continue

        optional = bool(_OPTIONAL_RE.match(trimmed))
        without_optional = _OPTIONAL_RE.sub("", trimmed, count=1).strip()

        is_alt = bool(_ALT_PREFIX_RE.match(without_optional))
        without_prefix = _ALT_PREFIX_RE.sub("", without_optional, count=1).strip()
        if not without_prefix:
            continue

        options = split_alternatives(without_prefix) or [without_prefix]

        if is_alt and stops:
            stops[-1].options.extend(options)
            continue

        stops.append(Stop(options=options, optional=optional))
    return stops


def _place_names(items: List[str]) -> List[str]:
    names: List[str] = []
    for stop in build_stops(items):
        names.extend(stop.options)
    return names


# ---------------------------------------------------------------------------
# Line rules
# ---------------------------------------------------------------------------

SKIP = "skip"
ALTERNATIVE = "alternative"
PERIOD = "period"
DAY = "day"
SUGGESTED = "suggested"


@dataclass
class LineMatch:
    kind: str
    content: str = ""
    day: Optional[str] = None
    period: Optional[PeriodName] = None


LineRule = Callable[[str], Optional[LineMatch]]


def _period(name: str) -> PeriodName:
    return PeriodName(name.capitalize())


def _match_non_place(line: str) -> Optional[LineMatch]:
    return LineMatch(SKIP) if is_non_place(line) else None


def _match_alternative(line: str) -> Optional[LineMatch]:
    match = _ALTERNATIVE_RE.match(line)
    return LineMatch(ALTERNATIVE, content=match.group(1)) if match else None


def _match_day_option_period(line: str) -> Optional[LineMatch]:
    match = _DAY_OPTION_PERIOD_RE.match(line)
    if not match:
        return None
    day, option, period, content = match.groups()
    return LineMatch(PERIOD, content=content, day=f"Day {day} (Option {option.upper()})",
                     period=_period(period))


def _match_day_period(line: str) -> Optional[LineMatch]:
    match = _DAY_PERIOD_RE.match(line)
    if not match:
        return None
    day, period, content = match.groups()
    return LineMatch(PERIOD, content=content, day=f"Day {day}", period=_period(period))


def _match_day(line: str) -> Optional[LineMatch]:
    match = _DAY_RE.match(line)
    return LineMatch(DAY, content=match.group(2), day=f"Day {match.group(1)}") if match else None


def _match_suggested(line: str) -> Optional[LineMatch]:
    match = _SUGGESTED_RE.match(line)
    return LineMatch(SUGGESTED, content=match.group(1)) if match else None


# Evaluated in order; the first rule returning a match wins.
LINE_RULES: List[Tuple[str, LineRule]] = [
    ("non_place", _match_non_place),
    ("alternative", _match_alternative),
    ("day_option_period", _match_day_option_period),
    ("day_period", _match_day_period),
    ("day", _match_day),
    ("suggested", _match_suggested),
]


def classify_line(line: str) -> Optional[LineMatch]:
    """Run the rule table over one line; None means the line carries no places."""
    stripped = _BULLET_RE.sub("", line).strip()
    if not stripped:
        return None
    for _, rule in LINE_RULES:
        match = rule(stripped)
        if match is not None:
            return match
    return None


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

@dataclass
class _ParseState:
    days: Dict[str, ItineraryDay] = field(default_factory=dict)
    suggested: List[str] = field(default_factory=list)
    last_stop: Optional[Stop] = None
    matched: int = 0

    def day(self, key: str) -> ItineraryDay:
        if key not in self.days:
            self.days[key] = ItineraryDay(key=key)
        return self.days[key]


def _apply(state: _ParseState, match: LineMatch) -> None:
    if match.kind == SKIP:
        return

    if match.kind == ALTERNATIVE:
        if state.last_stop is None:
            logger.debug("Alternative line without a previous stop ignored")
            return
        state.last_stop.options.extend(_place_names(split_items(match.content)))
        state.matched += 1
        return

    if match.kind == PERIOD:
        stops = build_stops(split_items(match.content))
        state.day(match.day).periods.setdefault(match.period, []).extend(stops)
        state.last_stop = stops[-1] if stops else None
        state.matched += 1
        return

    if match.kind == DAY:
        state.day(match.day).suggested.extend(_place_names(split_items(match.content)))
        state.last_stop = None
        state.matched += 1
        return

    if match.kind == SUGGESTED:
        state.suggested.extend(_place_names(split_items(match.content)))
        state.last_stop = None
        state.matched += 1


def _finish_day(day: ItineraryDay) -> Optional[ItineraryDay]:
    periods = {period: day.periods[period] for period in PERIOD_ORDER if day.periods.get(period)}
    scheduled = set()
    for stops in periods.values():
        for stop in stops:
            scheduled.update(stop.options)

    suggested: List[str] = []
    for name in day.suggested:
        if name not in scheduled and name not in suggested:
            suggested.append(name)

    if not periods and not suggested:
        return None
    return ItineraryDay(key=day.key, periods=periods, suggested=suggested)


def parse_lines(text: str) -> Optional[Itinerary]:
    """Parse line-formatted places text into an Itinerary, or None if nothing matched."""
    state = _ParseState()
    for line in (text or "").splitlines():
        match = classify_line(line)
        if match is not None:
            _apply(state, match)

    if not state.matched:
        return None

    days = [d for d in (_finish_day(day) for day in state.days.values()) if d is not None]
    suggested = list(dict.fromkeys(state.suggested))

    if days and suggested:
        days.append(ItineraryDay(key=SUGGESTED_DAY_KEY, suggested=suggested))
        suggested = []

    itinerary = Itinerary(days=days, suggested=suggested)
    if itinerary.is_empty():
        return None

    logger.debug("Legacy parser matched %d lines into %d days", state.matched, len(days))
    return itinerary


# ---------------------------------------------------------------------------
# Last-resort bold-span extraction
# ---------------------------------------------------------------------------

def _bold_places(text: str) -> List[str]:
    places: List[str] = []
    for span in _BOLD_RE.findall(text):
        name = span.strip()
        if len(name) > 2 and not _RESERVED_LABEL_RE.match(name) and name not in places:
            places.append(name)
    return places


def extract_bold_places(text: str) -> Optional[Itinerary]:
    """Pull bold spans out of ``### Day N`` sections (or the whole text)."""
    text = text or ""
    headers = list(_DAY_HEADER_RE.finditer(text))

    if headers:
        days: Dict[str, ItineraryDay] = {}
        for index, header in enumerate(headers):
            end = headers[index + 1].start() if index + 1 < len(headers) else len(text)
            places = _bold_places(text[header.end():end])
            if not places:
                continue
            key = f"Day {header.group(1)}"
            day = days.setdefault(key, ItineraryDay(key=key))
            for place in places:
                if place not in day.suggested:
                    day.suggested.append(place)
        return Itinerary(days=list(days.values())) if days else None

    places = _bold_places(text)
    return Itinerary(suggested=places) if places else None
