"""spellbook: generate MCP server bundles from declarative spells."""

from __future__ import annotations

__version__ = "0.1.0"

from spellbook.errors import FieldError, SpellValidationError  # noqa: E402
from spellbook.generator import BUNDLE_FILES, generate_bundle  # noqa: E402
from spellbook.storage import (  # noqa: E402
    clear_spells,
    load_spells,
    load_spells_report,
    save_spells,
)
from spellbook.types import Spell  # noqa: E402
from spellbook.validator import check_spell, validate_spell  # noqa: E402

__all__ = [
    "BUNDLE_FILES",
    "FieldError",
    "Spell",
    "SpellValidationError",
    "__version__",
    "check_spell",
    "clear_spells",
    "generate_bundle",
    "load_spells",
    "load_spells_report",
    "save_spells",
    "validate_spell",
]
