"""Example spells shipped with spellbook.

Entries are candidates without an ``id``; :func:`instantiate_example` assigns
one and validates the result.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any

from spellbook.errors import SpellNotFoundError
from spellbook.types import Spell
from spellbook.validator import validate_spell

_CALCULATOR_CODE = """const { a, b, operation } = input;
switch (operation) {
  case 'add': return { result: a + b };
  case 'subtract': return { result: a - b };
  case 'multiply': return { result: a * b };
  case 'divide': return { result: b !== 0 ? a / b : 'Error: Division by zero' };
  default: return { error: 'Invalid operation' };
}"""

EXAMPLES: dict[str, dict[str, Any]] = {
    "github-fetcher": {
        "name": "github-fetcher",
        "description": (
            "Fetches GitHub issues by repository and label. Useful for tracking bugs, "
            "features, and pull requests across multiple repositories."
        ),
        "action": {
            "type": "http",
            "config": {
                "url": "https://api.github.com/repos/{{owner}}/{{repo}}/issues",
                "method": "GET",
                "headers": {"Accept": "application/vnd.github+json"},
            },
        },
        "inputSchema": {
            "type": "object",
            "properties": {"owner": {"type": "string"}, "repo": {"type": "string"}},
            "required": ["owner", "repo"],
        },
        "outputSchema": {"type": "array"},
    },
    "weather-api": {
        "name": "weather-api",
        "description": (
            "Fetches current weather data for a given city. Returns temperature, conditions, "
            "humidity, and wind speed from OpenWeatherMap API."
        ),
        "action": {
            "type": "http",
            "config": {
                "url": "https://api.openweathermap.org/data/2.5/weather?q={{city}}&appid={{apiKey}}",
                "method": "GET",
            },
        },
        "inputSchema": {
            "type": "object",
            "properties": {"city": {"type": "string"}, "apiKey": {"type": "string"}},
            "required": ["city", "apiKey"],
        },
        "outputSchema": {"type": "object"},
    },
    "calculator": {
        "name": "calculator",
        "description": (
            "Performs basic arithmetic operations on two numbers. Supports addition, "
            "subtraction, multiplication, and division with proper error handling for "
            "division by zero."
        ),
        "action": {"type": "script", "config": {"runtime": "node", "code": _CALCULATOR_CODE}},
        "inputSchema": {
            "type": "object",
            "properties": {
                "a": {"type": "number"},
                "b": {"type": "number"},
                "operation": {"type": "string", "enum": ["add", "subtract", "multiply", "divide"]},
            },
            "required": ["a", "b", "operation"],
        },
        "outputSchema": {"type": "object"},
    },
}


def example_names() -> list[str]:
    return sorted(EXAMPLES)


def get_example(name: str) -> dict[str, Any]:
    """Return a deep copy of the candidate named *name*."""
    try:
        return copy.deepcopy(EXAMPLES[name])
    except KeyError:
        raise SpellNotFoundError(
            f"Unknown example: {name}. Available: {', '.join(example_names())}"
        ) from None


def instantiate_example(name: str, spell_id: str | None = None) -> Spell:
    candidate = get_example(name)
    candidate["id"] = spell_id or str(uuid.uuid4())
    return validate_spell(candidate)
