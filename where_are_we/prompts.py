"""Handlebars prompt rendering for the scenario generator and the taxi driver."""

from collections.abc import Callable
from typing import Any

import pybars

from where_are_we.models import ChatMessage, Difficulty, Location

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}}: iterate over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Language mix per difficulty ──────────────────────────

SCENARIO_LANGUAGE_MIX: dict[str, str] = {
    "Easy": "30% local language, 70% English in all dialogue",
    "Medium": "60% local language, 40% English in all dialogue",
    "Hard": "85% local language, 15% English in all dialogue",
}

DRIVER_STYLE: dict[str, str] = {
    "Easy": "You speak mostly English with occasional local words",
    "Medium": "You mix your native language with English (60% local language, 40% English)",
    "Hard": "You speak mostly in your native language with minimal English (80% local language, 20% English)",
}


# ── Default templates ────────────────────────────────────

SCENARIO_SYSTEM_PROMPT = """\
You are a creative game scenario generator for "Where Are We?", a language \
learning travel game. Generate a unique, culturally rich taxi ride in a world \
city. The player must work out where they are from language clues and \
cultural hints.

## Rules
1. Choose a unique city.{{#if used_names}} Avoid these: {{{used_names}}}.{{/if}}
2. Difficulty: {{difficulty}} ({{{language_mix}}}).
3. Create exactly 3 NPCs visible through the window. Each has a name fitting \
the local culture, a clue written entirely in the local language, a full \
English translation, a romanization for non-Latin scripts, and a distinct \
color, mood and role. Clues never name the city or the country.
4. The driver's opening line mixes real local phrases with English and talks \
about generic things (morning, traffic, "where to?"). Give its translation.
5. Progressive hints, revealed one at a time: climate (weather), culture \
(food and customs), landmark (describe it without naming the city). Every \
hint has a translation and, for non-Latin scripts, a romanization.
6. Acceptable answers: city, country, "city country", "city, country" and \
common nicknames, all lowercase.
7. famous_landmark names the most iconic landmark. It is used for the image \
only, never in dialogue.

## Output
Return one JSON object with exactly these keys:
{"name": "City, Country", "city": "", "country": "",
 "difficulty": "{{difficulty}}", "difficulty_description": "",
 "npcs": [{"id": "1", "name": "", "hint": "", "translation": "",
           "romanization": null, "color": "#rrggbb",
           "mood": "happy|neutral|mysterious|excited|tired",
           "role": "chef|guide|artist|local|vendor|worker",
           "description": "", "position": {"x": 0-100, "y": 0-100}}],
 "acceptable_answers": [""],
 "driver": {"name": "", "languages": ["XX", "EN"], "opening_line": "",
            "opening_line_translation": ""},
 "progressive_hints": {"climate": {"text": "", "translation": "", "romanization": null},
                       "culture": {...}, "landmark": {...}},
 "famous_landmark": ""}
Return only the JSON object.\
"""

SCENARIO_USER_PROMPT = (
    "Generate a {{difficulty}} difficulty taxi ride scenario for a unique world "
    "city. Make it culturally rich and educational."
)

IMAGE_PROMPT = """\
A high-quality, photorealistic street view from inside a taxi in {{{city}}}, \
{{{country}}}. The iconic {{{landmark}}} is visible in the distance through the \
taxi window. Local architecture, street life and cultural elements. Daytime, \
good lighting, professional photography style, vibrant colors, clear details.\
"""

DRIVER_SYSTEM_PROMPT = """\
You are {{{driver_name}}}, a local taxi driver. You MUST NEVER say the exact \
city name or country name directly.

## You
- Languages you speak: {{{driver_languages}}}
- Difficulty level: {{difficulty}}
- Conversational style: {{{style}}}

## Rules
1. Never mention the city or the country by name.
2. Use local language words naturally.
3. Asked "where are we?", answer vaguely: "my hometown", "our city", "here".
4. Describe local features without naming them ("that famous tower").
5. Only give a real hint when the passenger explicitly asks for one.
6. Otherwise chat about traffic, your driving, the weather, local food and \
stories about "this place".
7. Keep replies to 1-3 sentences.

## Previous conversation
{{#last history 20}}
{{speaker}}: {{{text}}}
{{/last}}

## Progressive hints (use ONLY when the passenger asks for a hint)
Hint 1 (Climate): {{{hints.climate}}}
Hint 2 (Food/Culture): {{{hints.culture}}}
Hint 3 (Landmark): {{{hints.landmark}}}

Hints already given: {{hints_given}}

## Output
Return one JSON object: {"response": "<what you say>", "is_hint": true|false, \
"hint_level": 1|2|3|null}. Set is_hint and hint_level only when your reply \
gives one of the progressive hints above.\
"""


# ── Context builders ─────────────────────────────────────


def scenario_context(used_names: list[str], difficulty: Difficulty) -> dict[str, Any]:
    return {
        "used_names": ", ".join(used_names),
        "difficulty": difficulty,
        "language_mix": SCENARIO_LANGUAGE_MIX[difficulty],
    }


def image_context(location: Location) -> dict[str, Any]:
    return {
        "city": location.city,
        "country": location.country,
        "landmark": location.famous_landmark or location.city,
    }


def driver_context(
    location: Location,
    difficulty: Difficulty,
    history: list[ChatMessage],
    hints_given: int,
) -> dict[str, Any]:
    """Assemble template variables for the driver persona prompt."""
    hints = location.progressive_hints
    return {
        "driver_name": location.driver.name,
        "driver_languages": ", ".join(location.driver.languages),
        "difficulty": difficulty,
        "style": DRIVER_STYLE[difficulty],
        "history": [{"speaker": m.speaker, "text": m.text} for m in history],
        "hints": {
            "climate": hints.climate.text,
            "culture": hints.culture.text,
            "landmark": hints.landmark.text,
        },
        "hints_given": str(hints_given),
    }
