import pytest

from mapchat.api.models import (
    ActionError,
    DirectionError,
    DirectionErrorKind,
    Directions,
    Goto,
    LatLng,
    Marker,
    PlaceRecord,
    PlacesFound,
    SearchMany,
    SearchOne,
    Stop,
    map_action_to_dict,
    parse_map_action,
)


@pytest.mark.parametrize("data, expected_type", [
    ({"action": "search", "query": "Eiffel Tower"}, SearchOne),
    ({"action": "searchOne", "query": "Eiffel Tower"}, SearchOne),
    ({"action": "searchMany", "queries": ["Louvre", "Orsay"]}, SearchMany),
    ({"action": "multiSearch", "queries": ["Louvre", "Orsay"]}, SearchMany),
    ({"action": "goto", "lat": "48.85", "lng": 2.35, "zoom": 14}, Goto),
    ({"action": "marker", "lat": 48.85, "lng": 2.35, "title": "Here"}, Marker),
    ({"action": "directions", "origin": "my location", "destination": "Louvre"}, Directions),
])
def test_parse_map_action_accepts_known_actions(data, expected_type):
    assert isinstance(parse_map_action(data), expected_type)


@pytest.mark.parametrize("data", [
    None,
    "search",
    {"action": "teleport", "query": "Mars"},
    {"action": "search", "query": "   "},
    {"action": "searchMany", "queries": ["", " "]},
    {"action": "goto", "lat": "north"},
    {"action": "marker", "lng": 2.35},
    {"action": "directions", "origin": "Louvre"},
])
def test_parse_map_action_rejects_invalid_input(data):
    assert parse_map_action(data) is None


def test_parse_map_action_keeps_client_id():
    assert parse_map_action({"action": "search", "query": "x", "id": "abc"}).action_id == "abc"
    assert parse_map_action({"action": "search", "query": "x", "_timestamp": 1700000000}).action_id == "1700000000"


def test_actions_get_distinct_ids():
    assert SearchOne("Louvre").action_id != SearchOne("Louvre").action_id


def test_map_action_dict_round_trip():
    action = Goto(lat=48.85, lng=2.35, zoom=14, title="Paris", action_id="goto-1")
    data = map_action_to_dict(action)

    assert data == {"action": "goto", "lat": 48.85, "lng": 2.35, "zoom": 14, "title": "Paris", "id": "goto-1"}
    assert parse_map_action(data) == action


def test_stop_to_dict_omits_missing_travel_time():
    assert Stop(options=["A"]).to_dict() == {"options": ["A"], "optional": False}
    assert Stop(options=["A"], travel_time="5 min").to_dict()["travelTime"] == "5 min"


def test_outcome_dicts():
    place = PlaceRecord(id="p1", display_name="Louvre", location=LatLng(48.86, 2.34), rating=4.7)
    found = PlacesFound(action_id="a1", places=[place]).to_dict()

    assert found["type"] == "places"
    assert found["places"][0]["displayName"] == "Louvre"
    assert found["places"][0]["location"] == {"lat": 48.86, "lng": 2.34}

    error = ActionError(action_id="a2", error=DirectionError(
        kind=DirectionErrorKind.NO_ROUTE, message="No routes found between these locations.",
        origin="Paris", destination="Tokyo",
    )).to_dict()
    assert error["type"] == "error"
    assert error["error"]["type"] == "NO_ROUTE"


def test_search_many_queries_must_be_a_list():
    action = parse_map_action({"action": "searchMany", "queries": "Louvre"})

    assert action.queries == ["Louvre"]
    assert parse_map_action({"action": "searchMany", "queries": 5}) is None
    assert parse_map_action({"action": "searchMany", "queries": {"q": "Louvre"}}) is None
