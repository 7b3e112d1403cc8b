from __future__ import annotations

import copy
import uuid
from typing import Any

import pytest

DESCRIPTION = (
    "A test spell for unit testing purposes. This description needs to be at least "
    "100 characters long to pass validation."
)


def http_candidate(**overrides: Any) -> dict[str, Any]:
    """A valid http spell candidate; *overrides* replace top-level keys."""
    base: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "name": "test-spell",
        "description": DESCRIPTION,
        "inputSchema": {"type": "object", "properties": {"q": {"type": "string"}}},
        "outputSchema": {"type": "object"},
        "action": {
            "type": "http",
            "config": {"url": "https://api.example.com/test", "method": "GET"},
        },
    }
    base.update(copy.deepcopy(overrides))
    return base


def script_candidate(code: str = "return { ok: true };", **overrides: Any) -> dict[str, Any]:
    return http_candidate(
        action={"type": "script", "config": {"runtime": "node", "code": code}}, **overrides
    )


def http_action(url: str, method: str = "GET", **config: Any) -> dict[str, Any]:
    return {"type": "http", "config": {"url": url, "method": method, **config}}


@pytest.fixture
def spells_file(tmp_path):
    return tmp_path / ".kiro" / "data" / "spells.json"
