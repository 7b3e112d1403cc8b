"""Spellbook MCP server: an MCP tool that creates other MCP tools.

Exposes ``create_spell`` and ``list_spells`` over stdio. Register it with a
client as::

    {
      "mcpServers": {
        "spellbook": {"command": "spellbook", "args": ["serve"]}
      }
    }

Tool logic lives in the synchronous :func:`create_spell` / :func:`list_spells`
functions; the async handlers run them in a worker thread because they touch
the spells file. Errors raised there become ``isError`` tool results.
"""

from __future__ import annotations

import uuid
from functools import partial
from pathlib import Path
from typing import Any

import anyio
import mcp.server.stdio
import mcp.types as types
from anyio import to_thread
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from spellbook import __version__
from spellbook.errors import DuplicateSpellError
from spellbook.generator import generate_for_spell
from spellbook.logging import get_logger
from spellbook.storage import find_by_name, load_spells, resolve_path, save_spells
from spellbook.templates import DOCKERFILE, PACKAGE_JSON, README, SERVER_SOURCE, image_name
from spellbook.validator import create_spell_schema, validate_spell

log = get_logger("spellbook.server")

SERVER_NAME = "spellbook"
_PREVIEW_CHARS = 500
_LIST_DESCRIPTION_CHARS = 80


def tool_definitions() -> list[types.Tool]:
    return [
        types.Tool(
            name="create_spell",
            description=(
                "Create a new MCP tool from a spell definition. Generates Dockerfile, "
                "package.json, index.js, and README.md."
            ),
            inputSchema=create_spell_schema(),
        ),
        types.Tool(
            name="list_spells",
            description="List all created spells with their names and descriptions.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def create_spell(
    arguments: dict[str, Any] | None, spells_file: Path | str | None = None
) -> list[str]:
    """Validate, generate and persist a spell; return the response text blocks.

    Any ``id`` in *arguments* is ignored and a fresh one assigned. Raises
    :class:`SpellValidationError` or :class:`DuplicateSpellError`.
    """
    candidate = {k: v for k, v in (arguments or {}).items() if k != "id"}
    candidate["id"] = str(uuid.uuid4())
    spell = validate_spell(candidate)

    spells = load_spells(spells_file)
    existing = find_by_name(spells, spell.name)
    if existing is not None:
        raise DuplicateSpellError(spell.name, existing.id)

    files = generate_for_spell(spell)
    spells[spell.id] = spell
    path = save_spells(spells, spells_file)
    log.info("spell created", extra={"fields": {"spell": spell.name, "id": spell.id}})

    file_list = "\n".join(f"  - {name}" for name in files)
    image = image_name(spell)
    summary = (
        f'Spell "{spell.name}" created.\n\n'
        f"Generated files:\n{file_list}\n\n"
        f"Persisted to: {path}\n\n"
        "Next steps:\n"
        "1. Save the generated files to a directory\n"
        f"2. Run: docker build -t {image} .\n"
        f'3. Register it with your MCP client under "{spell.name}" '
        f'(command "docker", args ["run", "--rm", "-i", "{image}"])'
    )
    preview = (
        "Generated Files:\n\n"
        f"--- {DOCKERFILE} ---\n{files[DOCKERFILE]}\n"
        f"--- {PACKAGE_JSON} ---\n{files[PACKAGE_JSON]}\n"
        f"--- {SERVER_SOURCE} ---\n{files[SERVER_SOURCE][:_PREVIEW_CHARS]}...\n\n"
        f"({README} also generated)"
    )
    return [summary, preview]


def list_spells(spells_file: Path | str | None = None) -> str:
    spells = load_spells(spells_file)
    if not spells:
        return "No spells created yet.\n\nUse create_spell to summon your first MCP tool!"

    entries = []
    for spell in sorted(spells.values(), key=lambda s: s.name):
        desc = spell.description[:_LIST_DESCRIPTION_CHARS]
        entries.append(f"  {spell.name}\n     {desc}...")
    plural = "" if len(spells) == 1 else "s"
    return f"Your Spellbook ({len(spells)} spell{plural}):\n\n" + "\n\n".join(entries)


def build_server(spells_file: Path | str | None = None) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return tool_definitions()

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict[str, Any] | None
    ) -> list[types.TextContent]:
        log.info("tool call", extra={"fields": {"tool": name}})
        if name == "create_spell":
            texts = await to_thread.run_sync(partial(create_spell, arguments, spells_file))
        elif name == "list_spells":
            texts = [await to_thread.run_sync(partial(list_spells, spells_file))]
        else:
            raise ValueError(f"Unknown tool: {name}")
        return [types.TextContent(type="text", text=t) for t in texts]

    return server


async def serve(spells_file: Path | str | None = None) -> None:
    server = build_server(spells_file)
    log.info("serving on stdio", extra={"fields": {"spells_file": str(resolve_path(spells_file))}})
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=__version__,
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )


def main(spells_file: Path | str | None = None) -> None:
    anyio.run(serve, spells_file)
