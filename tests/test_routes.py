import pytest

from main import create_app
from mapchat.api.interpreter import interpret


@pytest.fixture
def chat_calls():
    return []


@pytest.fixture
def client(resolver, chat_calls):
    def reply_fn(message, **kwargs):
        chat_calls.append((message, kwargs))
        return interpret('Here it is.\n{"action": "search", "query": "Boston"}')

    app = create_app(resolver=resolver, reply_fn=reply_fn)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "service": "mapchat"}


def test_config_requires_maps_key(client, monkeypatch):
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "")
    assert client.get("/api/config").status_code == 500

    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "maps-key")
    assert client.get("/api/config").get_json()["google_maps_api_key"] == "maps-key"


def test_interpret_endpoint(client):
    response = client.post("/api/interpret", json={
        "text": 'Hotels\n[PLACES]\n{"suggested": ["Hotel Artemide Rome Italy"]}\n[/PLACES]',
    })

    data = response.get_json()
    assert data["message"] == "Hotels"
    assert data["places"] == {"suggested": ["Hotel Artemide Rome Italy"]}
    assert data["placesByDay"] == {"Suggested": ["Hotel Artemide Rome Italy"]}


def test_interpret_requires_text(client):
    assert client.post("/api/interpret", json={"text": 42}).status_code == 400


def test_chat_endpoint(client, chat_calls):
    response = client.post("/api/chat", json={"message": "Where is Boston?", "planningMode": True})

    data = response.get_json()
    assert data["message"] == "Here it is."
    assert data["mapAction"]["action"] == "searchOne"
    assert data["mapAction"]["query"] == "Boston"
    assert chat_calls[0][0] == "Where is Boston?"
    assert chat_calls[0][1]["planning_mode"] is True


def test_chat_requires_message(client):
    assert client.post("/api/chat", json={"message": "  "}).status_code == 400


def test_chat_failure_is_500(resolver):
    def reply_fn(message, **kwargs):
        raise RuntimeError("model unavailable")

    client = create_app(resolver=resolver, reply_fn=reply_fn).test_client()

    assert client.post("/api/chat", json={"message": "hi"}).status_code == 500


def test_actions_endpoint_resolves_and_returns_view(client):
    response = client.post("/api/actions", json={"action": {"action": "search", "query": "Boston", "id": "a1"}})

    data = response.get_json()
    assert response.status_code == 200
    assert data["superseded"] is False
    assert data["outcome"]["type"] == "places"
    assert data["outcome"]["actionId"] == "a1"
    assert data["view"]["markers"][0]["title"] == "Boston"

    # the same action id is not resolved twice
    again = client.post("/api/actions", json={"action": {"action": "search", "query": "Boston", "id": "a1"}})
    assert again.get_json()["superseded"] is True
    assert again.get_json()["outcome"] is None


def test_actions_on_separate_channels(client):
    client.post("/api/actions", json={"action": {"action": "search", "query": "Boston"}, "channel": "left"})
    client.post("/api/actions", json={"action": {"action": "search", "query": "Colosseum"}, "channel": "right"})

    left = client.post("/api/actions", json={
        "action": {"action": "marker", "lat": 42.0, "lng": -71.0, "title": "Pin"}, "channel": "left",
    }).get_json()
    assert [m["title"] for m in left["view"]["markers"]] == ["Boston", "Pin"]


def test_actions_rejects_invalid_action(client):
    response = client.post("/api/actions", json={"action": {"action": "teleport"}})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid map action"


def test_session_resets_view(client, resolver):
    client.post("/api/actions", json={"action": {"action": "search", "query": "Boston"}})
    assert len(resolver.cache) == 1

    assert client.post("/api/session").get_json() == {"status": "ok"}
    assert len(resolver.cache) == 0
    assert resolver.view().markers == []
