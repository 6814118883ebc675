"""
RESPONSIBILITIES
- Headless Typer CLI driving the mapping engine from JSON files.
- Applies a saved template to a parsed workbook and exports confirmed records.
PROCESS OVERVIEW
1. export -> load workbook/schema/template, confirm-and-advance up to N times,
   print or write the JSON export and optionally POST it.
2. check -> list required fields the template leaves unmapped (exit 1 if any).
3. a1 -> convert 0-based (row, col) into an A1 reference.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from sheetmap.address import format_a1_cell
from sheetmap.config import load_settings
from sheetmap.core.errors import SheetMapError
from sheetmap.exporter import post_json
from sheetmap.mapping_store import MappingStore
from sheetmap.schema import parse_schema
from sheetmap.templates import load_template
from sheetmap.utils.log import get_logger, set_level
from sheetmap.workbook import WorkbookState

app = typer.Typer(help="Map spreadsheet cells onto JSON Schema fields and export records.")
logger = get_logger("cli")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read {path}: {exc}") from exc


def _prepare_store(workbook: Path, schema: Path, template: Path, settings: Optional[Path]) -> MappingStore:
    engine_settings = load_settings(settings)
    set_level(engine_settings.log_level)
    store = MappingStore(settings=engine_settings)
    try:
        store.load_workbook(WorkbookState.model_validate_json(_read_text(workbook)))
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid workbook file {workbook}: {exc}") from exc
    store.set_schema(parse_schema(_read_text(schema)))
    result = load_template(store, template)
    for item in result.missing:
        typer.echo(f"warning: missing cell for field {item.field}", err=True)
    return store


@app.command("export")
def export_command(
    workbook: Path = typer.Option(..., exists=True, dir_okay=False, help="Workbook JSON (parsed grid)."),
    schema: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON Schema file."),
    template: Path = typer.Option(..., exists=True, dir_okay=False, help="Mapping template JSON."),
    records: int = typer.Option(1, min=1, help="Maximum number of records to confirm."),
    output: Optional[Path] = typer.Option(None, help="Write the export here instead of stdout."),
    post_url: Optional[str] = typer.Option(None, help="POST the export to this URL."),
    settings: Optional[Path] = typer.Option(None, help="Alternate settings.yaml."),
) -> None:
    """Confirm up to N records from a template and export them as JSON."""

    try:
        store = _prepare_store(workbook, schema, template, settings)
        confirmed = 0
        while confirmed < records and store.confirm_and_advance():
            confirmed += 1
        logger.info("Confirmed %d record(s)", confirmed)
        payload = store.build_json()
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(text, encoding="utf-8")
            typer.echo(f"Wrote {confirmed} record(s) to {output}")
        else:
            typer.echo(text)
        if post_url:
            response = post_json(post_url, payload)
            typer.echo(f"Posted export to {post_url}: {json.dumps(response, ensure_ascii=False)}")
    except SheetMapError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


@app.command("check")
def check_command(
    workbook: Path = typer.Option(..., exists=True, dir_okay=False, help="Workbook JSON (parsed grid)."),
    schema: Path = typer.Option(..., exists=True, dir_okay=False, help="JSON Schema file."),
    template: Path = typer.Option(..., exists=True, dir_okay=False, help="Mapping template JSON."),
    settings: Optional[Path] = typer.Option(None, help="Alternate settings.yaml."),
) -> None:
    """List required fields the template leaves unmapped."""

    try:
        store = _prepare_store(workbook, schema, template, settings)
    except SheetMapError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    missing = store.missing_required_fields()
    if missing:
        typer.echo("Missing required fields: " + ", ".join(missing))
        raise typer.Exit(code=1)
    typer.echo("All required fields are mapped.")


@app.command("a1")
def a1_command(
    row: int = typer.Argument(..., min=0, help="0-based row index."),
    col: int = typer.Argument(..., min=0, help="0-based column index."),
) -> None:
    """Print the A1 reference for a 0-based cell."""

    typer.echo(format_a1_cell(row, col))


if __name__ == "__main__":
    app()
