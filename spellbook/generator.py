"""Bundle generation: validate a candidate spell, then render every template."""

from __future__ import annotations

from typing import Any

from spellbook.logging import get_logger
from spellbook.templates import TEMPLATES
from spellbook.types import Spell
from spellbook.validator import validate_spell

log = get_logger("spellbook.generator")

BUNDLE_FILES: tuple[str, ...] = tuple(TEMPLATES)


def generate_for_spell(spell: Spell) -> dict[str, str]:
    """Render the four bundle files for an already-validated *spell*."""
    log.debug(
        "generating bundle",
        extra={"fields": {"spell": spell.name, "action": spell.action.type}},
    )
    return {filename: render(spell) for filename, render in TEMPLATES.items()}


def generate_bundle(candidate: Any) -> dict[str, str]:
    """Validate *candidate* and return ``{filename: content}`` for the bundle.

    Raises :class:`~spellbook.errors.SpellValidationError` when *candidate*
    is not a valid spell; nothing is rendered in that case.

    Example
    -------
    >>> files = generate_bundle(candidate)  # doctest: +SKIP
    >>> sorted(files)  # doctest: +SKIP
    ['Dockerfile', 'README.md', 'index.js', 'package.json']
    """
    spell = validate_spell(candidate)
    return generate_for_spell(spell)
