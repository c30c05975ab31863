from types import SimpleNamespace

from mapchat.api.llm import PLANNING_PROMPT, SYSTEM_PROMPT, build_messages, build_system_prompt, generate_reply
from mapchat.api.models import SearchOne


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_generate_reply_interprets_model_output():
    client, completions = fake_client(
        'The Louvre is in the 1st arrondissement.\n'
        '{"action": "search", "query": "Louvre Museum Paris"}\n'
        '[FOLLOWUP]\n- Show me cafes nearby\n[/FOLLOWUP]'
    )

    reply = generate_reply("Where is the Louvre?", client=client)

    assert reply.cleaned_text == "The Louvre is in the 1st arrondissement."
    assert isinstance(reply.map_action, SearchOne)
    assert reply.follow_ups == ["Show me cafes nearby"]

    call = completions.calls[0]
    assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert call["messages"][-1] == {"role": "user", "content": "Where is the Louvre?"}


def test_planning_mode_uses_planning_prompt_and_budget():
    client, completions = fake_client('Plan\n[PLACES]\n{"suggested": ["Louvre Paris France"]}\n[/PLACES]')

    reply = generate_reply("Plan 2 days in Paris", planning_mode=True, client=client)

    assert reply.itinerary.suggested == ["Louvre Paris France"]
    call = completions.calls[0]
    assert call["messages"][0]["content"].startswith(PLANNING_PROMPT)
    assert call["max_tokens"] == 2000


def test_planning_prompt_includes_preferences():
    prompt = build_system_prompt(True, {
        "duration": "3 days",
        "interests": ["food", "art"],
        "travelStyle": "relaxed",
    })

    assert "Trip duration: 3 days" in prompt
    assert "Interests: food, art" in prompt
    assert "Travel style: relaxed" in prompt
    assert "Must-see" not in prompt
    assert build_system_prompt(False, {"duration": "3 days"}) == SYSTEM_PROMPT


def test_history_keeps_only_chat_turns():
    messages = build_messages("next", history=[
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "system", "content": "ignored"},
        {"role": "user", "content": ""},
    ])

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
