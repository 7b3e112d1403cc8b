"""spellbook CLI: validate, generate and manage spells.

Commands:
- validate / generate / digest SOURCE (file path, `-` for stdin, or http(s) URL)
- add / list / show / remove / clear for the persisted spellbook
- examples / new for the built-in catalog
- serve to run the spellbook MCP server on stdio
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from spellbook.catalog import EXAMPLES, example_names, get_example
from spellbook.errors import (
    DuplicateSpellError,
    SpellbookError,
    SpellNotFoundError,
    SpellValidationError,
)
from spellbook.generator import generate_for_spell
from spellbook.package.files import write_bundle
from spellbook.package.zip import make_zip_bundle
from spellbook.signing.checks import bundle_digest, verify_bundle
from spellbook.sources import read_candidate
from spellbook.storage import (
    clear_spells,
    find_by_name,
    load_spells,
    load_spells_report,
    resolve_path,
    save_spells,
)
from spellbook.types import Spell
from spellbook.validator import schema_warnings, validate_spell

app = typer.Typer(add_completion=False, help="Generate MCP server bundles from spells")
console = Console()

_SPELLS_FILE_HELP = "Spells file (default: $SPELLBOOK_SPELLS_FILE or ./.kiro/data/spells.json)"


def _print_validation_errors(exc: SpellValidationError) -> None:
    table = Table(title="Spell validation failed")
    table.add_column("Field", style="cyan")
    table.add_column("Problem")
    table.add_column("Code", style="dim")
    for err in exc.errors:
        table.add_row(err.path or "<root>", err.message, err.code)
    console.print(table)


def _fail(exc: SpellbookError) -> typer.Exit:
    if isinstance(exc, SpellValidationError):
        _print_validation_errors(exc)
    else:
        rprint(f"[red]Error:[/red] {exc}")
    return typer.Exit(code=1)


def _print_warnings(spell: Spell) -> None:
    for warning in schema_warnings(spell):
        rprint(f"[yellow]warning:[/yellow] {warning}")


def _load_spell(source: str) -> Spell:
    try:
        return validate_spell(read_candidate(source))
    except SpellbookError as exc:
        raise _fail(exc) from exc


def _lookup(spells: dict[str, Spell], key: str) -> Spell:
    spell = spells.get(key) or find_by_name(spells, key)
    if spell is None:
        raise SpellNotFoundError(f"No spell named or with id {key!r}")
    return spell


@app.command()
def validate(source: str = typer.Argument(..., help="Spell JSON: path, '-' or URL")) -> None:
    spell = _load_spell(source)
    _print_warnings(spell)
    rprint(f"[green]Valid spell:[/green] {spell.name} ({spell.action.type})")


@app.command()
def generate(
    source: str = typer.Argument(..., help="Spell JSON: path, '-' or URL"),
    out: str = typer.Option("./dist", "--out", help="Output directory; files go to <out>/<name>/"),
    zip_: bool = typer.Option(False, "--zip", help="Also write <out>/<name>.zip and .sha256"),
    force: bool = typer.Option(False, "--force", help="Replace an existing output directory"),
) -> None:
    spell = _load_spell(source)
    _print_warnings(spell)
    bundle = generate_for_spell(spell)
    outdir = Path(out)

    try:
        written = write_bundle(outdir / spell.name, bundle, force=force)
    except FileExistsError as exc:
        rprint(f"[red]Error:[/red] {exc} (use --force to replace it)")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"Generated {spell.name}")
    table.add_column("File", style="cyan")
    table.add_column("Bytes", justify="right")
    for path in written:
        table.add_row(str(path), str(len(bundle[path.name].encode("utf-8"))))
    if zip_:
        zip_path = make_zip_bundle(outdir, bundle, bundle_name=spell.name)
        table.add_row(str(zip_path), str(zip_path.stat().st_size))
    console.print(table)


@app.command()
def digest(
    source: str = typer.Argument(..., help="Spell JSON: path, '-' or URL"),
    expect: str | None = typer.Option(
        None, "--expect", help="Fail unless the digest matches (hex or sha256:<hex>)"
    ),
) -> None:
    """Print the SHA-256 of the bundle a spell generates."""
    spell = _load_spell(source)
    bundle = generate_for_spell(spell)
    if expect is not None:
        try:
            verify_bundle(bundle, expect)
        except ValueError as exc:
            rprint(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=1) from exc
    print(bundle_digest(bundle))


@app.command()
def add(
    source: str = typer.Argument(..., help="Spell JSON: path, '-' or URL"),
    force: bool = typer.Option(False, "--force", help="Replace a spell with the same name or id"),
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    try:
        candidate = read_candidate(source)
        spells = load_spells(spells_file)
        if isinstance(candidate, dict):
            same_name = find_by_name(spells, str(candidate.get("name", "")))
            if same_name is not None and force:
                candidate = {**candidate, "id": same_name.id}
            else:
                candidate.setdefault("id", str(uuid.uuid4()))
        spell = validate_spell(candidate)

        clash = find_by_name(spells, spell.name)
        if clash is not None and not force:
            raise DuplicateSpellError(spell.name, clash.id)
        if spell.id in spells and not force:
            raise SpellbookError(
                f"A spell with id {spell.id} already exists (use --force to replace it)"
            )
        spells[spell.id] = spell
        path = save_spells(spells, spells_file)
    except SpellbookError as exc:
        raise _fail(exc) from exc

    _print_warnings(spell)
    rprint(f"[green]Saved:[/green] {spell.name} (id={spell.id}) -> {path}")


@app.command("list")
def list_(
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    report = load_spells_report(spells_file)
    table = Table(title=f"Spellbook ({resolve_path(spells_file)})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Action")
    table.add_column("Id", style="dim")
    table.add_column("Description")
    for spell in sorted(report.spells.values(), key=lambda s: s.name):
        table.add_row(spell.name, spell.action.type, spell.id, spell.description[:60] + "…")
    console.print(table)
    if report.skipped:
        noun = "entry" if report.skipped == 1 else "entries"
        rprint(f"[yellow]Skipped {report.skipped} invalid {noun}[/yellow]")


@app.command()
def show(
    key: str = typer.Argument(..., help="Spell name or id"),
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    try:
        spell = _lookup(load_spells(spells_file), key)
    except SpellbookError as exc:
        raise _fail(exc) from exc
    print(json.dumps(spell.to_wire(), indent=2, ensure_ascii=False))


@app.command()
def remove(
    key: str = typer.Argument(..., help="Spell name or id"),
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    try:
        spells = load_spells(spells_file)
        spell = _lookup(spells, key)
    except SpellbookError as exc:
        raise _fail(exc) from exc
    del spells[spell.id]
    save_spells(spells, spells_file)
    rprint(f"[green]Removed:[/green] {spell.name}")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation"),
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    path = resolve_path(spells_file)
    if not yes:
        typer.confirm(f"Delete {path}?", abort=True)
    clear_spells(path)
    rprint(f"[green]Cleared:[/green] {path}")


@app.command()
def examples() -> None:
    table = Table(title="Example spells")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Action")
    table.add_column("Description")
    for name in example_names():
        ex = EXAMPLES[name]
        table.add_row(name, ex["action"]["type"], ex["description"])
    console.print(table)


@app.command()
def new(
    example: str = typer.Argument(..., help="Example name (see `spellbook examples`)"),
    out: str | None = typer.Option(None, "--out", help="Write to file instead of stdout"),
) -> None:
    """Start a spell from a catalog example, with a fresh id."""
    try:
        candidate = {"id": str(uuid.uuid4()), **get_example(example)}
    except SpellbookError as exc:
        raise _fail(exc) from exc
    payload = json.dumps(candidate, indent=2, ensure_ascii=False)
    if out:
        Path(out).write_text(payload + "\n", encoding="utf-8")
        rprint(f"[green]Spell written:[/green] {out}")
    else:
        print(payload)


@app.command()
def serve(
    spells_file: str | None = typer.Option(None, "--spells-file", help=_SPELLS_FILE_HELP),
) -> None:
    """Run the spellbook MCP server (create_spell, list_spells) on stdio."""
    from spellbook.server import main

    main(spells_file)


if __name__ == "__main__":
    app()
