"""Spell IR: Pydantic models for tool descriptors (the input to generation)."""

from __future__ import annotations

import re
import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticCustomError
from pydantic.networks import AnyUrl

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
NAME_CHARS = r"[a-zA-Z0-9-]+"
NAME_PATTERN = rf"^{NAME_CHARS}$"

# {{key}} where key is one or more ASCII word characters (same as JS \w)
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}", re.ASCII)

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_url_adapter = TypeAdapter(AnyUrl)


def has_placeholders(text: str | None) -> bool:
    return bool(text) and PLACEHOLDER_RE.search(text) is not None


class HttpConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    method: HttpMethod
    headers: dict[str, str] | None = None
    body: str | None = None

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        # Parsed as written; the original string is kept, not the normalized URL.
        try:
            _url_adapter.validate_python(value)
        except ValidationError:
            raise PydanticCustomError("url_parsing", "Invalid url") from None
        return value

    def needs_interpolation(self) -> bool:
        # The body is only sent for POST/PUT/PATCH
        sent_body = self.body if self.method in BODY_METHODS else None
        if has_placeholders(self.url) or has_placeholders(sent_body):
            return True
        return any(has_placeholders(v) for v in (self.headers or {}).values())

    def placeholders(self) -> list[str]:
        """Placeholder keys used anywhere in the request, in first-seen order."""
        texts = [self.url, *(self.headers or {}).values(), self.body or ""]
        seen: dict[str, None] = {}
        for text in texts:
            for key in PLACEHOLDER_RE.findall(text):
                seen.setdefault(key, None)
        return list(seen)


class ScriptConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    runtime: Literal["node"]
    code: str = Field(min_length=1)


class HttpAction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["http"]
    config: HttpConfig


class ScriptAction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["script"]
    config: ScriptConfig


Action = Annotated[Union[HttpAction, ScriptAction], Field(discriminator="type")]


class Spell(BaseModel):
    """A validated tool descriptor.

    Attributes
    ----------
    id: str
        UUID string, kept exactly as supplied.
    name: str
        Tool name, 3-50 characters of letters, digits and hyphens.
    description: str
        Free text, 100-500 characters.
    input_schema / output_schema: dict
        JSON Schema documents (wire keys ``inputSchema`` / ``outputSchema``),
        passed through untouched.
    action: HttpAction | ScriptAction
        What the generated tool does when called.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH, pattern=NAME_PATTERN)
    description: str = Field(min_length=MIN_DESCRIPTION_LENGTH, max_length=MAX_DESCRIPTION_LENGTH)
    input_schema: dict[str, Any] = Field(alias="inputSchema")
    output_schema: dict[str, Any] = Field(alias="outputSchema")
    action: Action

    @field_validator("id")
    @classmethod
    def _uuid(cls, value: str) -> str:
        if not _UUID_RE.fullmatch(value):
            raise PydanticCustomError("uuid_parsing", "Invalid uuid")
        uuid.UUID(value)
        return value

    def has_output_properties(self) -> bool:
        props = self.output_schema.get("properties")
        return isinstance(props, dict) and len(props) > 0

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase wire keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
