from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sheetmap.config import EngineSettings
from sheetmap.mapping_store import MappingStore
from sheetmap.workbook import WorkbookState


class RecordingHandler(logging.Handler):
    """Collects records emitted on a sheetmap logger (the package root does not propagate)."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: int = logging.DEBUG) -> List[str]:
        return [record.getMessage() for record in self.records if record.levelno >= level]


@pytest.fixture()
def log_records() -> Iterator[RecordingHandler]:
    handler = RecordingHandler()
    logger = logging.getLogger("sheetmap")
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)


def make_workbook(rows: List[List[Any]], *, sheet: str = "Sheet1", merges: List[Dict[str, Any]] | None = None) -> WorkbookState:
    return WorkbookState.model_validate(
        {
            "sheets": [sheet],
            "activeSheet": sheet,
            "data": {sheet: rows},
            "merges": {sheet: merges or []},
        }
    )


@pytest.fixture()
def grid() -> WorkbookState:
    """Ten rows of (name, amount, note) with a header row."""

    rows: List[List[Any]] = [["Name", "Amount", "Note"]]
    for idx in range(1, 10):
        rows.append([f"item-{idx}", idx * 10, ""])
    return make_workbook(rows)


@pytest.fixture()
def settings() -> EngineSettings:
    return EngineSettings(
        jump_search_factor=4,
        default_movement={"dy": 1, "dx": 0, "jump_next": False},
        autodetect_rules={"title": "A1", "description": "B1"},
    )


@pytest.fixture()
def object_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Item name: shown on the label"},
            "amount": {"type": "number", "title": "Amount"},
            "tags": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["name", "amount", "tags"],
    }


@pytest.fixture()
def mapping_store(settings: EngineSettings, grid: WorkbookState, object_schema: Dict[str, Any]) -> MappingStore:
    store = MappingStore(settings=settings)
    store.load_workbook(grid)
    store.set_schema(object_schema)
    return store


@pytest.fixture()
def workbook_factory():
    return make_workbook
