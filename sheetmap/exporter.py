"""JSON exporter for confirmed mapping records."""

# Module responsibilities:
# - Flatten a mapping into {field: {cell, value}} / [{cell, value}, ...] using the schema.
# - Shape the export after the schema root (cells array, array root, plain object).
# - Report required scalar fields that have no mapped cell.
# - Post an export to a remote endpoint.

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Mapping, Optional

import requests

from sheetmap.address import CellAddress, coerce_mapping, format_a1_cell
from sheetmap.core.errors import (
    ExportUploadError,
    MissingSchemaError,
    MissingWorkbookError,
    NoConfirmedRecordsError,
)
from sheetmap.schema import SchemaIndex, is_array_meta, resolve_properties, resolve_required
from sheetmap.utils.log import get_logger
from sheetmap.workbook import WorkbookState

logger = get_logger("exporter")

DEFAULT_POST_TIMEOUT = 30.0

CellPair = Dict[str, str]


def cell_text(value: Any) -> str:
    """Render a grid value as export text (``None`` becomes ``""``)."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _cell_pair(workbook: WorkbookState, address: CellAddress) -> CellPair:
    value = workbook.display_value(address.sheet, address.row, address.col)
    return {"cell": format_a1_cell(address.row, address.col), "value": cell_text(value)}


def flatten(mapping: Mapping[str, Any], workbook: WorkbookState, schema: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten one mapping into the export record for ``schema``'s fields.

    Array fields become lists (an empty list only when the field is required);
    scalar fields become a single pair and are omitted when unmapped.
    """

    index = SchemaIndex.from_schema(schema)
    addresses_by_field = coerce_mapping(mapping)
    record: Dict[str, Any] = {}
    for name in index.field_names:
        pairs = [_cell_pair(workbook, addr) for addr in addresses_by_field.get(name, [])]
        if index.is_array(name):
            if pairs or index.is_required(name):
                record[name] = pairs
        elif pairs:
            record[name] = pairs[0]
    return record


def _export_inputs(state: Mapping[str, Any]) -> tuple[WorkbookState, Dict[str, Any]]:
    workbook = state.get("workbook")
    schema = state.get("schema")
    if workbook is None:
        raise MissingWorkbookError("No workbook loaded")
    if not schema:
        raise MissingSchemaError("No schema loaded")
    if not isinstance(workbook, WorkbookState):
        workbook = WorkbookState.model_validate(workbook)
    return workbook, dict(schema)


def _has_cells_array(schema: Mapping[str, Any]) -> bool:
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return False
    cells = properties.get("cells")
    return isinstance(cells, Mapping) and is_array_meta(cells)


def build_json(state: Mapping[str, Any]) -> Any:
    """Build the export document from the confirmed ``records``.

    Raises:
        MissingWorkbookError, MissingSchemaError: When an input is not loaded.
        NoConfirmedRecordsError: For a plain object schema with no records yet.
    """

    workbook, schema = _export_inputs(state)
    records: List[Mapping[str, Any]] = list(state.get("records") or [])

    if _has_cells_array(schema):
        result: Any = {"cells": [flatten(snapshot, workbook, schema) for snapshot in records]}
    elif schema.get("type") == "array":
        result = [{"cells": flatten(snapshot, workbook, schema)} for snapshot in records]
    else:
        if not records:
            raise NoConfirmedRecordsError("No confirmed records to export")
        result = {"cells": flatten(records[-1], workbook, schema)}

    logger.info("Built export", extra={"records": len(records)})
    return result


def build_preview(state: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten the live (unconfirmed) mapping as ``{"cells": ...}``."""

    workbook, schema = _export_inputs(state)
    return {"cells": flatten(state.get("mapping") or {}, workbook, schema)}


def find_missing_required_fields(schema: Optional[Mapping[str, Any]], mapping: Optional[Mapping[str, Any]]) -> List[str]:
    """Return required scalar fields with no mapped address.

    Array-typed required fields are never reported since an empty list is a
    valid export for them.
    """

    if not schema:
        return []
    properties = resolve_properties(schema) or {}
    mapping = mapping or {}
    missing: List[str] = []
    for name in resolve_required(schema):
        if is_array_meta(properties.get(name)):
            continue
        if not mapping.get(name):
            missing.append(name)
    return missing


def post_json(
    url: str,
    payload: Any,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_POST_TIMEOUT,
) -> Any:
    """POST ``payload`` as JSON and return the decoded response body.

    Returns ``{}`` when the endpoint answers with a non-JSON body.

    Raises:
        ExportUploadError: On transport failures or non-2xx responses.
    """

    if not isinstance(url, str) or not url:
        raise ValueError("URL required")
    poster = session.post if session is not None else requests.post
    logger.info("Posting export to %s", url)
    try:
        response = poster(url, json=payload, timeout=timeout)
    except requests.RequestException as exc:
        raise ExportUploadError(f"POST failed: {exc}") from exc
    if not response.ok:
        raise ExportUploadError(f"POST failed: {response.status_code} {response.text}")
    try:
        return response.json()
    except ValueError:
        return {}


__all__ = [
    "build_json",
    "build_preview",
    "cell_text",
    "find_missing_required_fields",
    "flatten",
    "post_json",
]
