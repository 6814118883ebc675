from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest
from typer.testing import CliRunner

from sheetmap.cli import app

runner = CliRunner()


def _write(path: Path, payload: Any) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture()
def inputs(tmp_path: Path) -> Dict[str, Path]:
    workbook = {
        "sheets": ["Sheet1"],
        "activeSheet": "Sheet1",
        "data": {"Sheet1": [["Name", "Amount"], ["pen", 2], ["ink", 3.0], ["", ""]]},
        "merges": {},
    }
    schema = {
        "type": "object",
        "properties": {
            "cells": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"name": {"type": "string"}, "amount": {"type": "number"}},
                    "required": ["name", "amount"],
                },
            }
        },
    }
    template = {
        "sheetName": "Sheet1",
        "fields": {
            "name": [{"sheet": "Sheet1", "row": 1, "col": 0, "dy": 1, "dx": 0, "jumpNext": True}],
            "amount": [{"sheet": "Sheet1", "row": 1, "col": 1, "follow": {"field": "name", "index": 0}}],
        },
    }
    return {
        "workbook": _write(tmp_path / "workbook.json", workbook),
        "schema": _write(tmp_path / "schema.json", schema),
        "template": _write(tmp_path / "template.json", template),
    }


def _args(command: str, inputs: Dict[str, Path]) -> list[str]:
    return [
        command,
        "--workbook",
        str(inputs["workbook"]),
        "--schema",
        str(inputs["schema"]),
        "--template",
        str(inputs["template"]),
    ]


def test_export_writes_confirmed_records(inputs: Dict[str, Path], tmp_path: Path) -> None:
    output = tmp_path / "out" / "export.json"
    result = runner.invoke(app, _args("export", inputs) + ["--records", "5", "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Wrote 2 record(s)" in result.output
    assert json.loads(output.read_text(encoding="utf-8")) == {
        "cells": [
            {"name": {"cell": "A2", "value": "pen"}, "amount": {"cell": "B2", "value": "2"}},
            {"name": {"cell": "A3", "value": "ink"}, "amount": {"cell": "B3", "value": "3"}},
        ]
    }


def test_export_prints_to_stdout(inputs: Dict[str, Path]) -> None:
    result = runner.invoke(app, _args("export", inputs))

    assert result.exit_code == 0, result.output
    assert '"value": "pen"' in result.output
    assert '"value": "ink"' not in result.output


def test_check_reports_missing_required_fields(inputs: Dict[str, Path], tmp_path: Path) -> None:
    assert runner.invoke(app, _args("check", inputs)).exit_code == 0

    _write(inputs["template"], {"fields": {"name": [{"sheet": "Sheet1", "row": 1, "col": 0}]}})
    result = runner.invoke(app, _args("check", inputs))

    assert result.exit_code == 1
    assert "Missing required fields: amount" in result.output


def test_invalid_template_exits_with_error(inputs: Dict[str, Path]) -> None:
    inputs["template"].write_text("{broken", encoding="utf-8")
    result = runner.invoke(app, _args("export", inputs))

    assert result.exit_code == 2


def test_a1_command() -> None:
    result = runner.invoke(app, ["a1", "9", "27"])

    assert result.exit_code == 0
    assert result.output.strip() == "AB10"
