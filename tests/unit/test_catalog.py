from __future__ import annotations

import pytest

from spellbook.catalog import EXAMPLES, example_names, get_example, instantiate_example
from spellbook.errors import SpellNotFoundError
from spellbook.generator import generate_for_spell
from spellbook.validator import schema_warnings


@pytest.mark.parametrize("name", sorted(EXAMPLES))
def test_every_example_is_a_valid_spell(name: str) -> None:
    spell = instantiate_example(name)
    assert spell.name == name
    assert schema_warnings(spell) == []
    assert set(generate_for_spell(spell)) == {"Dockerfile", "package.json", "index.js", "README.md"}


def test_example_names_are_sorted() -> None:
    assert example_names() == ["calculator", "github-fetcher", "weather-api"]


def test_get_example_returns_a_copy() -> None:
    ex = get_example("github-fetcher")
    ex["action"]["config"]["url"] = "https://changed.example.com"
    assert get_example("github-fetcher")["action"]["config"]["url"].startswith(
        "https://api.github.com/"
    )


def test_unknown_example() -> None:
    with pytest.raises(SpellNotFoundError, match="Available: calculator"):
        get_example("nope")


def test_instantiate_uses_given_id() -> None:
    spell_id = "123e4567-e89b-12d3-a456-426614174000"
    assert instantiate_example("calculator", spell_id=spell_id).id == spell_id
    assert instantiate_example("calculator").id != instantiate_example("calculator").id
