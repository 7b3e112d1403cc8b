"""Spell validation, field-level checks and schema helpers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from importlib import resources
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from pydantic import TypeAdapter, ValidationError
from pydantic.networks import AnyUrl

from spellbook.errors import FieldError, SpellValidationError
from spellbook.logging import get_logger
from spellbook.types import (
    BODY_METHODS,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MIN_DESCRIPTION_LENGTH,
    MIN_NAME_LENGTH,
    NAME_CHARS,
    HttpAction,
    Spell,
)

log = get_logger("spellbook.validator")

_ACTION_TAGS = {"http", "script"}
_ANY_PLACEHOLDER_RE = re.compile(r"\{\{[^}]+\}\}")
_url_adapter = TypeAdapter(AnyUrl)


@dataclass
class ValidationResult:
    spell: Spell | None = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.spell is not None


# --- Spell validation -------------------------------------------------------


def _path(loc: tuple[str | int, ...]) -> str:
    parts = list(loc)
    # Discriminated unions report the tag as a path segment: action.http.config.url
    if len(parts) > 1 and parts[0] == "action" and parts[1] in _ACTION_TAGS:
        del parts[1]
    return ".".join(str(p) for p in parts)


def _field_errors(exc: ValidationError) -> list[FieldError]:
    return [
        FieldError(path=_path(err["loc"]), message=err["msg"], code=err["type"])
        for err in exc.errors(include_url=False)
    ]


def check_spell(data: Any) -> ValidationResult:
    """Validate *data* without raising; exactly one of spell/errors is populated."""
    try:
        spell = Spell.model_validate(data)
    except ValidationError as exc:
        errors = _field_errors(exc)
        log.debug("spell rejected", extra={"fields": {"errors": len(errors)}})
        return ValidationResult(errors=errors)
    return ValidationResult(spell=spell)


def validate_spell(data: Any) -> Spell:
    """Return a :class:`Spell` or raise :class:`SpellValidationError`."""
    if isinstance(data, Spell):
        return data
    result = check_spell(data)
    if result.spell is None:
        raise SpellValidationError(result.errors)
    return result.spell


# --- Field-level checks (interactive front ends) ----------------------------


def check_name(value: str) -> str | None:
    if not value:
        return "Name is required"
    if len(value) < MIN_NAME_LENGTH:
        return (
            f"Name must be at least {MIN_NAME_LENGTH} characters "
            f"(currently {len(value)}). Example: api-client"
        )
    if len(value) > MAX_NAME_LENGTH:
        return f"Name must be at most {MAX_NAME_LENGTH} characters (currently {len(value)})"
    if not re.fullmatch(NAME_CHARS, value):
        return "Name must contain only letters, numbers, and hyphens. Example: github-fetcher"
    return None


def check_description(value: str) -> str | None:
    if not value:
        return "Description is required"
    n = len(value)
    if n < MIN_DESCRIPTION_LENGTH:
        return (
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters "
            f"(currently {n}). Add more details about what the tool does."
        )
    if n > MAX_DESCRIPTION_LENGTH:
        return (
            f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters "
            f"(currently {n}). Please shorten it."
        )
    return None


def check_url_template(value: str) -> str | None:
    """Check a URL that may carry ``{{placeholders}}`` anywhere, host included.

    Placeholders are replaced with ``test`` before parsing. The IR validator
    itself parses URLs as written, so front ends call this first.
    """
    if not value:
        return "URL is required"
    try:
        _url_adapter.validate_python(_ANY_PLACEHOLDER_RE.sub("test", value))
    except ValidationError:
        return (
            "Invalid URL format. Example: https://api.example.com/data "
            "or https://api.example.com/{{resource}}"
        )
    return None


# --- Embedded JSON Schema checks --------------------------------------------


def schema_warnings(spell: Spell) -> list[str]:
    """Non-fatal problems in the schemas a generated server will compile.

    The generated server hands both schemas to Ajv at startup, so a schema
    that is not valid draft-07 would crash it before the first call.
    """
    warnings: list[str] = []
    schemas = (("inputSchema", spell.input_schema), ("outputSchema", spell.output_schema))
    for label, schema in schemas:
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as exc:
            where = "/".join(str(p) for p in exc.path) or "<root>"
            warnings.append(f"{label} is not a valid JSON Schema at {where}: {exc.message}")

    if spell.input_schema.get("type") != "object":
        warnings.append(
            "inputSchema should have type 'object'; MCP clients send arguments as an object"
        )

    if isinstance(spell.action, HttpAction):
        config = spell.action.config
        if config.body is not None and config.method not in BODY_METHODS:
            warnings.append(f"body is ignored for {config.method} requests")
        declared = spell.input_schema.get("properties") or {}
        for key in config.placeholders():
            if key not in declared:
                warnings.append(
                    f"placeholder {{{{{key}}}}} is not declared in inputSchema.properties "
                    "and will interpolate as an empty string unless supplied"
                )
    return warnings


# --- Packaged schemas -------------------------------------------------------


def _load_schema(package: str, resource_name: str) -> dict:
    with resources.files(package).joinpath(resource_name).open("r", encoding="utf-8") as f:
        return json.load(f)


def create_spell_schema() -> dict:
    return _load_schema("spellbook.schema", "create_spell.schema.json")
