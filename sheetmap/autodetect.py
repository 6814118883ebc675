"""Rule-based pre-filling of obvious field positions.

When a workbook and a schema are loaded and nothing has been mapped yet, fields
whose (case-insensitive) name has an A1 rule are placed on the active sheet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional

from sheetmap.address import CellAddress, MappingState, OffsetMovement, parse_a1_cell
from sheetmap.schema import resolve_properties
from sheetmap.store import State, Unsubscribe
from sheetmap.utils.log import get_logger
from sheetmap.workbook import WorkbookState

if TYPE_CHECKING:
    from sheetmap.mapping_store import MappingStore

logger = get_logger("autodetect")

DEFAULT_RULES = {"title": "A1", "description": "B1"}


def build_mapping(
    fields: Iterable[str],
    workbook: WorkbookState,
    rules: Mapping[str, str],
    movement: Optional[OffsetMovement] = None,
) -> MappingState:
    sheet = workbook.active_sheet
    mapping: MappingState = {}
    for name in fields:
        cell = rules.get(name.lower())
        position = parse_a1_cell(cell) if cell else None
        if position is None or not workbook.in_bounds(sheet, *position):
            continue
        row, col = position
        mapping[name] = [CellAddress(sheet=sheet, row=row, col=col, movement=movement or OffsetMovement())]
    return mapping


class AutoDetector:
    """Store subscriber proposing a mapping for an empty workspace.

    Without explicit ``rules`` the store's ``settings.autodetect_rules`` apply,
    and :data:`DEFAULT_RULES` when those are empty.
    """

    def __init__(self, rules: Optional[Mapping[str, str]] = None) -> None:
        self.rules: Optional[Dict[str, str]] = None
        if rules is not None:
            self.rules = {str(key).lower(): str(value) for key, value in rules.items()}

    def rules_for(self, mapping_store: "MappingStore") -> Mapping[str, str]:
        if self.rules is not None:
            return self.rules
        return mapping_store.settings.autodetect_rules or DEFAULT_RULES

    def attach(self, mapping_store: "MappingStore") -> Unsubscribe:
        def _listener(state: State, _prev: Optional[State]) -> None:
            self.try_detect(mapping_store, state)

        return mapping_store.subscribe(_listener)

    def try_detect(self, mapping_store: "MappingStore", state: Optional[Mapping[str, Any]] = None) -> bool:
        state = state if state is not None else mapping_store.get_state()
        workbook = state.get("workbook")
        schema = state.get("schema")
        if workbook is None or not schema or state.get("mapping"):
            return False
        properties = resolve_properties(schema)
        if not properties:
            return False
        proposed = build_mapping(
            properties, workbook, self.rules_for(mapping_store), mapping_store.default_movement()
        )
        if not proposed:
            return False
        logger.info("Auto-detected positions for %s", ", ".join(proposed))
        mapping_store.set_mapping(proposed)
        return True


__all__ = ["AutoDetector", "DEFAULT_RULES", "build_mapping"]
