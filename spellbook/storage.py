"""File-backed spell storage.

The whole collection lives in one JSON array. Loading never fails on a
missing or damaged file: it returns what it can and skips entries that no
longer validate, so one bad record cannot hide the rest. Saving rewrites the
whole file through a temporary sibling and ``os.replace``.

Spells may carry secrets in headers or body templates; the file is stored
unencrypted, so keep it out of version control.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from spellbook.config import default_spells_file
from spellbook.logging import get_logger
from spellbook.types import Spell
from spellbook.validator import check_spell

log = get_logger("spellbook.storage")


@dataclass
class LoadReport:
    spells: dict[str, Spell] = field(default_factory=dict)
    skipped: int = 0


def resolve_path(path: Path | str | None) -> Path:
    return default_spells_file() if path is None else Path(path)


def load_spells_report(path: Path | str | None = None) -> LoadReport:
    """Load spells keyed by id, counting entries that failed validation."""
    p = resolve_path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return LoadReport()
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warning("unreadable spells file", extra={"fields": {"path": str(p), "error": str(exc)}})
        return LoadReport()

    if not isinstance(raw, list):
        log.warning("spells file is not a JSON array", extra={"fields": {"path": str(p)}})
        return LoadReport()

    report = LoadReport()
    for index, item in enumerate(raw):
        result = check_spell(item)
        if result.spell is None:
            report.skipped += 1
            log.warning(
                "skipping invalid spell",
                extra={"fields": {"path": str(p), "index": index, "errors": len(result.errors)}},
            )
            continue
        report.spells[result.spell.id] = result.spell
    return report


def load_spells(path: Path | str | None = None) -> dict[str, Spell]:
    return load_spells_report(path).spells


def save_spells(spells: Mapping[str, Spell], path: Path | str | None = None) -> Path:
    """Write *spells* as a JSON array, replacing the file in one step.

    Directory creation and write errors propagate to the caller.
    """
    p = resolve_path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps([s.to_wire() for s in spells.values()], indent=2, ensure_ascii=False)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, p)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.debug("saved spells", extra={"fields": {"path": str(p), "count": len(spells)}})
    return p


def clear_spells(path: Path | str | None = None) -> None:
    resolve_path(path).unlink(missing_ok=True)


def find_by_name(spells: Mapping[str, Spell], name: str) -> Spell | None:
    for spell in spells.values():
        if spell.name == name:
            return spell
    return None
