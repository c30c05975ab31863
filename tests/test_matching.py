from mapchat.api.matching import (
    PlaceMatcher,
    find_best_match,
    normalize_stop_text,
    strip_location_suffix,
)
from mapchat.api.models import Itinerary, ItineraryDay, LatLng, PeriodName, PlaceRecord, Stop


def record(place_id, name, address=""):
    return PlaceRecord(id=place_id, display_name=name, formatted_address=address,
                       location=LatLng(35.0, 139.0))


SENSO_JI = record("place-1", "Senso-ji Temple", "Asakusa, Tokyo, Japan")
SKYTREE = record("place-2", "Tokyo Skytree", "Sumida, Tokyo, Japan")


def test_display_name_prefix_of_itinerary_name():
    assert find_best_match("Senso-ji Temple Tokyo Japan", [SENSO_JI]) is SENSO_JI


def test_unrelated_stop_has_no_match():
    assert find_best_match("Completely Unrelated Place", [SENSO_JI, SKYTREE]) is None


def test_exact_match_beats_partial_match():
    town = record("place-3", "Tokyo Skytree Town", "Oshiage, Sumida, Japan")
    assert find_best_match("Tokyo Skytree Tokyo Japan", [town, SKYTREE]) is SKYTREE


def test_scores_are_additive():
    matcher = PlaceMatcher()
    # exact + contained + prefix + partial
    assert matcher.score("Senso-ji Temple Tokyo Japan", SENSO_JI) == 250
    assert matcher.score("Completely Unrelated Place", SENSO_JI) == 0


def test_ties_keep_first_candidate():
    first = record("a", "Ueno Park")
    second = record("b", "Ueno Park")
    assert find_best_match("Ueno Park Tokyo Japan", [first, second]) is first


def test_prefixes_bold_and_asides_are_ignored():
    assert find_best_match("**Alternative:** Senso-ji Temple (early morning) Tokyo Japan", [SENSO_JI]) is SENSO_JI
    assert find_best_match("Accommodation: Tokyo Skytree Tokyo Japan", [SENSO_JI, SKYTREE]) is SKYTREE


def test_address_only_match():
    assert find_best_match("Asakusa Tokyo Japan", [SENSO_JI]) is SENSO_JI


def test_empty_candidate_fields_never_match():
    blank = PlaceRecord(id="x", display_name="", formatted_address="")
    assert find_best_match("Senso-ji Temple Tokyo Japan", [blank]) is None
    assert find_best_match("", [SENSO_JI]) is None


def test_normalization_helpers():
    assert strip_location_suffix("Senso-ji Temple Tokyo Japan") == "Senso-ji Temple"
    assert strip_location_suffix("Colosseum Rome") == "Colosseum Rome"
    assert normalize_stop_text("**Senso-ji  Temple** (exterior) Tokyo Japan") == "sensoji temple"


def test_match_itinerary_enriches_known_places():
    itinerary = Itinerary(days=[ItineraryDay(
        key="Day 1",
        periods={PeriodName.MORNING: [Stop(options=["Senso-ji Temple Tokyo Japan"])]},
        suggested=["Mystery Bar Tokyo Japan"],
    )])

    matches = PlaceMatcher().match_itinerary(itinerary, [SENSO_JI, SKYTREE])
    assert matches == {"Senso-ji Temple Tokyo Japan": SENSO_JI}
