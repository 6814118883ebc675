"""Save and load reusable mapping templates."""

# Module responsibilities:
# - Serialize the live mapping as {"sheetName": ..., "fields": {field: [flat address]}}.
# - Load a template against the current workbook, keeping addresses that exist on the
#   active sheet and reporting the rest as warnings in the store's ``errors``.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from pydantic import ValidationError

from sheetmap.address import CellAddress, MappingState, mapping_to_flat
from sheetmap.core.errors import MissingWorkbookError, TemplateError
from sheetmap.utils.log import get_logger

if TYPE_CHECKING:
    from sheetmap.mapping_store import MappingStore

logger = get_logger("templates")


@dataclass(slots=True)
class MissingAddress:
    """Template entry that could not be placed on the current workbook."""

    field: str
    address: Any


@dataclass(slots=True)
class TemplateLoadResult:
    mapping: MappingState
    missing: List[MissingAddress] = field(default_factory=list)


def save_template(state: Mapping[str, Any], path: Path | str | None = None) -> str:
    """Return the template JSON for the live mapping, writing it to ``path`` if given."""

    mapping = state.get("mapping") or {}
    if not mapping:
        raise TemplateError("No mapping to save")
    workbook = state.get("workbook")
    template = {
        "sheetName": workbook.active_sheet if workbook is not None else None,
        "fields": mapping_to_flat(mapping),
    }
    text = json.dumps(template, indent=2, ensure_ascii=False)
    if path is not None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        logger.info("Template saved to %s", target)
    return text


def _read_source(source: Path | str) -> Dict[str, Any]:
    text = source.read_text(encoding="utf-8") if isinstance(source, Path) else source
    if not isinstance(text, str):
        raise TypeError("Template source must be a JSON string or a Path")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TemplateError("Invalid template JSON") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("fields"), dict):
        raise TemplateError('Template missing "fields"')
    return payload


def load_template(mapping_store: "MappingStore", source: Path | str) -> TemplateLoadResult:
    """Apply a template to ``mapping_store``.

    Addresses on another sheet than the active one, outside the grid, or that
    fail validation are skipped and reported; the store receives the kept
    mapping and one warning per skipped address in a single update.
    """

    payload = _read_source(source)
    workbook = mapping_store.get_state()["workbook"]
    if workbook is None:
        raise MissingWorkbookError("No workbook loaded")

    mapping: MappingState = {}
    missing: List[MissingAddress] = []
    for name, addresses in payload["fields"].items():
        kept: List[CellAddress] = []
        for raw in addresses or []:
            try:
                address = raw if isinstance(raw, CellAddress) else CellAddress.model_validate(raw)
            except ValidationError:
                missing.append(MissingAddress(field=name, address=raw))
                continue
            if address.sheet != workbook.active_sheet or not workbook.in_bounds(
                address.sheet, address.row, address.col
            ):
                missing.append(MissingAddress(field=name, address=raw))
                continue
            kept.append(address)
        if kept:
            mapping[name] = kept

    warnings = [f"Missing cell for field {item.field}" for item in missing]
    update: Dict[str, Any] = {"mapping": mapping}
    if warnings:
        update["errors"] = warnings
    mapping_store.store.set_state(update)
    if missing:
        logger.warning("Template loaded with %d unplaced addresses", len(missing))
    return TemplateLoadResult(mapping=mapping, missing=missing)


__all__ = [
    "MissingAddress",
    "TemplateLoadResult",
    "load_template",
    "save_template",
]
