# mapchat/api/llm.py
"""LLM helper functions for the map assistant.

Sends the conversation to OpenAI Chat Completions with either the map
assistant prompt or the trip-planning prompt, then hands the raw reply to
the response interpreter.  The prompts spell out the ``[PLACES]`` and
``[FOLLOWUP]`` contracts the interpreter relies on.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from mapchat.api.config import get_chat_config, get_openai_api_key
from mapchat.api.interpreter import InterpretedResponse, interpret

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

FOLLOWUP_INSTRUCTIONS = """At the end of your response, ALWAYS include 2-3 follow-up suggestions written from the user's perspective. Format them as:
[FOLLOWUP]
- First follow-up request
- Second follow-up request
- Third follow-up request
[/FOLLOWUP]"""

PLACES_INSTRUCTIONS = """At the end of EVERY response, include a [PLACES] section with ALL places mentioned, as strict JSON on one line (no trailing commas):
[PLACES]
{"days":[{"key":"Day 1","periods":{"Morning":[{"options":["Colosseum Rome Italy"],"optional":false,"travelTime":"10 min walk"}],"Afternoon":[{"options":["Roman Forum Rome Italy"]}],"Accommodation":[{"options":["Hotel Artemide Rome Italy"]}]},"suggested":["Trevi Fountain Rome Italy"]}]}
[/PLACES]

Periods are Morning, Afternoon, Evening and Accommodation. Put mutually exclusive choices for one slot into the same "options" list.
For non-itinerary responses (like hotel or restaurant recommendations), use:
[PLACES]
{"suggested":["Hotel Artemide Rome Italy","Hotel de Russie Rome Italy"]}
[/PLACES]

Include city AND country with every place name for accurate searching."""

SYSTEM_PROMPT = f"""You are a map assistant that helps users interact with a map. You can help users:
- Find locations, addresses, and places
- Get directions between places
- Discover restaurants, hotels, attractions, and other points of interest
- Learn about specific locations and landmarks

When a user asks about a location or place, respond with helpful information AND include a map action in your response to update the map.

Available map actions (include one in your response as JSON):
1. {{"action": "search", "query": "search term"}} - Search for a place
2. {{"action": "searchMany", "queries": ["place one", "place two"]}} - Show several places
3. {{"action": "goto", "lat": number, "lng": number, "zoom": number}} - Navigate to coordinates
4. {{"action": "directions", "origin": "place", "destination": "place"}} - Show directions ("my location" is allowed as origin)
5. {{"action": "marker", "lat": number, "lng": number, "title": "label"}} - Add a marker

{FOLLOWUP_INSTRUCTIONS}

Always be helpful, concise, and provide relevant map actions when appropriate."""

PLANNING_PROMPT = f"""You are a map assistant in Trip Planning Mode, an expert travel planner that creates detailed day-by-day itineraries.

When planning a trip:
1. Create a structured day-by-day itinerary using "### Day X: Title" headers with:
   - Morning, afternoon, and evening activities
   - Recommended restaurants and cafes
   - Travel time estimates between locations
   - Practical tips (best time to visit, tickets, reservations)
2. Include accommodation suggestions for each city/area visited
3. HIGHLIGHT the places suggested with **bold**
4. For follow-up questions, ALWAYS give a detailed text response FIRST, then add the [PLACES] and [FOLLOWUP] sections at the end

Do NOT include any JSON map actions.

{PLACES_INSTRUCTIONS}

{FOLLOWUP_INSTRUCTIONS}"""


def _get_client() -> OpenAI:
    """Return a cached OpenAI client instance."""
    global _client
    if _client is None:
        _client = OpenAI(api_key=get_openai_api_key())
    return _client


def build_system_prompt(planning_mode: bool, preferences: Optional[Dict[str, Any]] = None) -> str:
    if not planning_mode:
        return SYSTEM_PROMPT

    prompt = PLANNING_PROMPT
    if preferences:
        context = []
        if preferences.get("duration"):
            context.append(f"Trip duration: {preferences['duration']}")
        if preferences.get("interests"):
            context.append(f"Interests: {', '.join(preferences['interests'])}")
        if preferences.get("travelStyle"):
            context.append(f"Travel style: {preferences['travelStyle']}")
        if preferences.get("attractions"):
            context.append(f"Must-see places: {preferences['attractions']}")
        if context:
            prompt += (
                "\n\nUser's trip preferences (ALREADY PROVIDED - do not ask for these again):\n"
                + "\n".join(context)
                + "\n\nStart creating the itinerary right away based on these preferences."
            )
    return prompt


def build_messages(message: str, history: Optional[List[Dict[str, str]]] = None,
                   planning_mode: bool = False,
                   preferences: Optional[Dict[str, Any]] = None) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": build_system_prompt(planning_mode, preferences)}]
    for item in history or []:
        if item.get("role") in ("user", "assistant") and item.get("content"):
            messages.append({"role": item["role"], "content": item["content"]})
    messages.append({"role": "user", "content": message})
    return messages


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_reply(message: str, history: Optional[List[Dict[str, str]]] = None,
                   planning_mode: bool = False,
                   preferences: Optional[Dict[str, Any]] = None,
                   client: Optional[OpenAI] = None) -> InterpretedResponse:
    """Ask the chat model and return its interpreted reply."""
    cfg = get_chat_config()
    messages = build_messages(message, history, planning_mode, preferences)

    logger.debug(
        "Calling OpenAI ChatCompletion: model=%s planning=%s history=%d",
        cfg["model"],
        planning_mode,
        len(messages) - 2,
    )

    response = (client or _get_client()).chat.completions.create(
        model=cfg["model"],
        messages=messages,
        temperature=cfg["temperature"],
        max_tokens=cfg["planning_max_tokens"] if planning_mode else cfg["max_tokens"],
    )

    raw_content: str = response.choices[0].message.content or ""
    return interpret(raw_content)
