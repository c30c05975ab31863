# mapchat/api/matching.py
"""Link itinerary stop names to already-resolved place records.

Itinerary entries are written for search ("Senso-ji Temple Tokyo Japan"),
while provider records carry short display names ("Senso-ji Temple").
Scoring is deterministic and only uses data already on hand, so stops can
be enriched with rating, photos and types without another provider call.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional

from mapchat.api.models import Itinerary, PlaceRecord

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"^\s*(alternative|alt|option)\s*[:\-]\s*", re.I)
_ACCOMMODATION_RE = re.compile(r"^\s*accommodation\s*[:\-]\s*", re.I)
_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)\s*")
_PUNCTUATION_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

EXACT_SCORE = 100
CONTAINED_SCORE = 80
PREFIX_SCORE = 20
PARTIAL_SCORE = 50
ADDRESS_SCORE = 10


def clean_place_name(name: str) -> str:
    """Drop bold markers and "Alternative:" / "Accommodation:" prefixes."""
    cleaned = (name or "").replace("**", "").strip()
    cleaned = _PREFIX_RE.sub("", cleaned).strip()
    return _ACCOMMODATION_RE.sub("", cleaned).strip()


def strip_location_suffix(name: str) -> str:
    """Remove asides and the trailing "City Country" tokens of an itinerary name."""
    cleaned = _PARENTHETICAL_RE.sub(" ", clean_place_name(name)).strip()
    parts = cleaned.split()
    if len(parts) <= 2:
        return cleaned
    return " ".join(parts[:-2]) or cleaned


def _simplify(value: str) -> str:
    value = _PUNCTUATION_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub(" ", value).strip()


def normalize_stop_text(value: str) -> str:
    return _simplify(strip_location_suffix(value))


def normalize_candidate_text(value: str) -> str:
    cleaned = _PARENTHETICAL_RE.sub(" ", clean_place_name(value)).strip()
    return _simplify(cleaned)


def _overlaps(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


class PlaceMatcher:
    """Scores candidates against a stop name and picks the best one."""

    def score(self, stop_text: str, candidate: PlaceRecord) -> int:
        needle = normalize_stop_text(stop_text)
        if not needle:
            return 0
        cleaned_name = clean_place_name(stop_text).lower()

        display_name = (candidate.display_name or "").lower().strip()
        normalized_name = normalize_candidate_text(candidate.display_name or "")
        normalized_address = normalize_candidate_text(candidate.formatted_address or "")

        score = 0
        if normalized_name and normalized_name == needle:
            score += EXACT_SCORE

        # e.g. "senso-ji temple" inside "senso-ji temple tokyo japan"
        if display_name and display_name in cleaned_name:
            score += CONTAINED_SCORE
        if display_name and cleaned_name.startswith(display_name):
            score += PREFIX_SCORE

        if _overlaps(normalized_name, needle):
            score += PARTIAL_SCORE
        if _overlaps(normalized_address, needle):
            score += ADDRESS_SCORE
        return score

    def find_best_match(self, stop_text: str, candidates: Iterable[PlaceRecord]) -> Optional[PlaceRecord]:
        """Highest positive score wins; ties keep the first candidate; no match is None."""
        best: Optional[PlaceRecord] = None
        best_score = 0
        for candidate in candidates:
            score = self.score(stop_text, candidate)
            if score > best_score:
                best, best_score = candidate, score

        if best is None:
            logger.debug(f"No place record matches '{stop_text}'")
        return best

    def match_itinerary(self, itinerary: Itinerary, candidates: List[PlaceRecord]) -> Dict[str, PlaceRecord]:
        """Best record for every place name in the itinerary that has one."""
        matches: Dict[str, PlaceRecord] = {}
        for names in itinerary.flat_places().values():
            for name in names:
                if name in matches:
                    continue
                record = self.find_best_match(name, candidates)
                if record is not None:
                    matches[name] = record
        return matches


def find_best_match(stop_text: str, candidates: Iterable[PlaceRecord]) -> Optional[PlaceRecord]:
    return PlaceMatcher().find_best_match(stop_text, candidates)
