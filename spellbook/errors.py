"""Exception types shared by the validator, storage consumers, CLI and MCP server."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    path: str
    message: str
    code: str

    def as_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "code": self.code}


class SpellbookError(Exception):
    pass


class SpellValidationError(SpellbookError, ValueError):
    """A candidate spell failed validation.

    ``errors`` is never empty and keeps the order in which problems were found.
    """

    def __init__(self, errors: list[FieldError]):
        if not errors:
            raise ValueError("SpellValidationError requires at least one FieldError")
        self.errors = list(errors)
        super().__init__(self.render())

    def render(self) -> str:
        lines = [f"{e.path or '<root>'}: {e.message}" for e in self.errors]
        return "Spell validation failed:\n" + "\n".join(f"  - {line}" for line in lines)


class DuplicateSpellError(SpellbookError):
    def __init__(self, name: str, existing_id: str):
        self.name = name
        self.existing_id = existing_id
        super().__init__(
            f'Spell with name "{name}" already exists (id: {existing_id}). '
            "Each spell name must be unique."
        )


class SpellNotFoundError(SpellbookError, LookupError):
    pass


class CandidateSourceError(SpellbookError):
    pass
