"""Configuration: storage location and the defaults baked into generated servers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

SPELLS_FILE_ENV = "SPELLBOOK_SPELLS_FILE"

# Generated package
BASE_IMAGE = "node:20-alpine"
ENTRYPOINT = "index.js"
PACKAGE_VERSION = "1.0.0"
MCP_SDK_VERSION = "^1.0.0"
AJV_VERSION = "^8.12.0"


@dataclass(frozen=True)
class RuntimeDefaults:
    """Environment variables read by a generated server, with their defaults.

    Both the server template and the README table render from one instance,
    so the documented defaults always match the compiled ones.
    """

    allowed_hosts_env: str = "ALLOWED_HOSTS"
    allowed_hosts: str = "*"
    max_response_size_env: str = "MAX_RESPONSE_SIZE"
    max_response_size: int = 10 * 1024 * 1024
    http_timeout_env: str = "HTTP_TIMEOUT_MS"
    http_timeout_ms: int = 15000
    script_timeout_env: str = "SCRIPT_TIMEOUT_MS"
    script_timeout_ms: int = 5000


RUNTIME_DEFAULTS = RuntimeDefaults()


def default_spells_file() -> Path:
    """Return the spells file: ``$SPELLBOOK_SPELLS_FILE`` or ``./.kiro/data/spells.json``."""
    override = os.environ.get(SPELLS_FILE_ENV)
    if override:
        return Path(os.path.expanduser(override))
    return Path.cwd() / ".kiro" / "data" / "spells.json"
