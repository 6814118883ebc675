"""Mapping state machine: drops, moves, Confirm & Next and undo.

RESPONSIBILITIES
- Own ``mapping`` (working record), ``records`` (confirmed history) and
  ``current_field_index`` inside an ObservableStore.
- Route the "field dropped" / "overlay moved" input events through one set of
  mutation rules regardless of the input device.
- Snapshot-then-advance on confirm and restore the exact prior mapping on undo.
PROCESS OVERVIEW
1. load_workbook / set_schema populate the store.
2. drop_field / move_overlay / configure_movement edit the live mapping.
3. confirm_and_advance snapshots the mapping into records and moves every
   address through the MovementEngine; advance_current_field snapshots and
   focuses the next schema field instead.
4. undo pops the last record back into the live mapping.
Every transition is a single ``set_state`` call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sheetmap.address import (
    CellAddress,
    FollowMovement,
    MappingState,
    OffsetMovement,
    clone_mapping,
    coerce_mapping,
    parse_movement,
)
from sheetmap.config import EngineSettings, load_settings
from sheetmap.core.errors import MissingSchemaError, MissingWorkbookError, UnknownSheetError
from sheetmap.events import FieldDropped, MappingEvent, OverlayMoved
from sheetmap.exporter import build_json, build_preview, find_missing_required_fields
from sheetmap.movement import MovementEngine
from sheetmap.schema import SchemaIndex
from sheetmap.scripting import ScriptEvaluator
from sheetmap.store import Listener, ObservableStore, State, Unsubscribe
from sheetmap.utils.log import get_logger
from sheetmap.workbook import WorkbookState

INITIAL_STATE: Dict[str, Any] = {
    "workbook": None,
    "schema": None,
    "mapping": {},
    "current_field_index": 0,
    "errors": [],
    "records": [],
    "confirm_next_mode": "shift_row",
}


def _clamp(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(int(index), count - 1))


class MappingStore:
    """Application-level mapping workflow on top of an :class:`ObservableStore`."""

    def __init__(
        self,
        store: ObservableStore | None = None,
        *,
        settings: EngineSettings | None = None,
        evaluator: ScriptEvaluator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.evaluator = evaluator
        self.logger = logger or get_logger("mapping_store")
        initial = dict(INITIAL_STATE, confirm_next_mode=self.settings.confirm_next_mode)
        self.store = store or ObservableStore(initial, logger=get_logger("store"))

    # Store passthrough ----------------------------------------------------------------

    def get_state(self) -> State:
        return self.store.get_state()

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self.store.subscribe(listener)

    # Loading --------------------------------------------------------------------------

    def load_workbook(self, workbook: WorkbookState | Mapping[str, Any]) -> WorkbookState:
        if not isinstance(workbook, WorkbookState):
            workbook = WorkbookState.model_validate(workbook)
        self.store.set("workbook", workbook)
        self.logger.info("Workbook loaded with sheets %s", list(workbook.sheets))
        return workbook

    def set_schema(self, schema: Mapping[str, Any]) -> SchemaIndex:
        """Load a schema, failing fast when it has no resolvable properties."""

        index = SchemaIndex.from_schema(schema)
        current = self.store.get("current_field_index")
        self.store.set_state(
            {"schema": dict(schema), "current_field_index": _clamp(current, len(index.field_names))}
        )
        return index

    def set_active_sheet(self, sheet: str) -> None:
        workbook = self._require_workbook(self.store.get_state())
        if sheet not in workbook.sheets:
            raise UnknownSheetError(f"Unknown sheet: {sheet}")
        self.store.set("workbook", workbook.with_active_sheet(sheet))

    def set_mapping(self, mapping: Mapping[str, Any]) -> MappingState:
        coerced = {field: addrs for field, addrs in coerce_mapping(mapping).items() if addrs}
        self.store.set("mapping", coerced)
        return coerced

    def set_confirm_next_mode(self, mode: str) -> None:
        if mode not in ("shift_row", "advance_field"):
            raise ValueError(f"Unknown Confirm & Next mode: {mode}")
        self.store.set("confirm_next_mode", mode)

    # Field focus ----------------------------------------------------------------------

    def field_names(self) -> List[str]:
        index = self._schema_index(self.store.get_state())
        return list(index.field_names) if index else []

    def set_current_field_index(self, index: int) -> int:
        clamped = _clamp(index, len(self.field_names()))
        self.store.set("current_field_index", clamped)
        return clamped

    def current_field(self) -> Optional[str]:
        names = self.field_names()
        if not names:
            return None
        return names[_clamp(self.store.get("current_field_index"), len(names))]

    # Confirm & Next ---------------------------------------------------------------------

    def confirm_and_advance(self) -> bool:
        """Snapshot the mapping into ``records`` and move every address.

        Returns ``False`` without touching state when the mapping is empty.
        """

        state = self.store.get_state()
        mapping: MappingState = state["mapping"]
        if not mapping:
            return False
        workbook = self._require_workbook(state)

        records = list(state["records"])
        records.append(clone_mapping(mapping))
        next_mapping = self._engine(workbook).advance(mapping)

        self.store.set_state({"records": records, "mapping": next_mapping})
        self.logger.info(
            "Confirmed record %d; %d of %d fields still mapped",
            len(records),
            len(next_mapping),
            len(mapping),
        )
        return True

    def advance_current_field(self) -> bool:
        """Snapshot the mapping and focus the next schema field.

        Fails (``False``, no mutation) when the focused field has no mapped cell.
        """

        state = self.store.get_state()
        index = self._schema_index(state)
        if index is None:
            raise MissingSchemaError("Schema is not loaded")
        names = index.field_names
        current = state["current_field_index"]
        if not names or current >= len(names):
            return False
        field = names[current]
        if not state["mapping"].get(field):
            return False

        records = list(state["records"])
        records.append(clone_mapping(state["mapping"]))
        self.store.set_state(
            {"records": records, "current_field_index": _clamp(current + 1, len(names))}
        )
        return True

    def confirm_next(self) -> bool:
        """Run the Confirm & Next action selected by ``confirm_next_mode``."""

        if self.store.get("confirm_next_mode") == "advance_field":
            return self.advance_current_field()
        return self.confirm_and_advance()

    def undo(self) -> bool:
        """Restore the mapping captured by the last confirm."""

        records = self.store.get("records")
        if not records:
            return False
        restored = records.pop()
        self.store.set_state({"mapping": restored, "records": records})
        self.logger.info("Undo restored record %d", len(records) + 1)
        return True

    # Input events ------------------------------------------------------------------------

    def handle_event(self, event: MappingEvent | Mapping[str, Any]) -> bool:
        """Apply a drop or overlay-move payload from any input modality."""

        if isinstance(event, Mapping):
            event = OverlayMoved.model_validate(event) if "index" in event else FieldDropped.model_validate(event)
        if isinstance(event, OverlayMoved):
            return self.move_overlay(event.field, event.index, event.row, event.col, event.sheet)
        return self.drop_field(event.field, event.row, event.col, event.sheet)

    def drop_field(self, field: str, row: int, col: int, sheet: Optional[str] = None) -> bool:
        """Map ``field`` onto a cell.

        Array fields append; scalar fields replace their single entry, keeping its
        movement config. Drops outside the grid, on unknown fields or duplicating
        an existing cell of the field are ignored.
        """

        state = self.store.get_state()
        workbook = state["workbook"]
        if workbook is None:
            self.logger.debug("Ignoring drop of %s: no workbook", field)
            return False
        sheet = sheet or workbook.active_sheet
        if sheet not in workbook.sheets or not workbook.in_bounds(sheet, row, col):
            self.logger.debug("Ignoring drop of %s outside the grid (%s!%d,%d)", field, sheet, row, col)
            return False
        index = self._schema_index(state)
        if index is not None and field not in index:
            self.logger.debug("Ignoring drop of unknown field %s", field)
            return False

        mapping: MappingState = state["mapping"]
        existing = list(mapping.get(field, []))
        if any(addr.key == (sheet, row, col) for addr in existing):
            return False

        if index is not None and index.is_array(field):
            existing.append(CellAddress(sheet=sheet, row=row, col=col, movement=self.default_movement()))
        elif existing:
            existing = [existing[0].moved_to(row, col, sheet)]
        else:
            existing = [CellAddress(sheet=sheet, row=row, col=col, movement=self.default_movement())]

        mapping[field] = existing
        self.store.set("mapping", mapping)
        return True

    def move_overlay(self, field: str, index: int, row: int, col: int, sheet: Optional[str] = None) -> bool:
        """Move an existing entry, dragging its followers along for array leaders."""

        state = self.store.get_state()
        workbook = state["workbook"]
        if workbook is None:
            return False
        sheet = sheet or workbook.active_sheet
        mapping: MappingState = state["mapping"]
        entries = list(mapping.get(field, []))
        if index < 0 or index >= len(entries):
            return False
        if sheet not in workbook.sheets or not workbook.in_bounds(sheet, row, col):
            return False
        if any(pos != index and addr.key == (sheet, row, col) for pos, addr in enumerate(entries)):
            return False

        old = entries[index]
        entries[index] = old.moved_to(row, col, sheet)
        mapping[field] = entries

        schema_index = self._schema_index(state)
        is_leader = not isinstance(old.movement, FollowMovement)
        if schema_index is not None and schema_index.is_array(field) and is_leader and sheet == old.sheet:
            self._retarget_followers(mapping, workbook, field, index, row - old.row, col - old.col)

        self.store.set("mapping", mapping)
        return True

    def configure_movement(self, field: str, index: int, movement: Any) -> bool:
        """Replace the movement config of one entry with a single new variant."""

        mapping: MappingState = self.store.get("mapping")
        entries = list(mapping.get(field, []))
        if index < 0 or index >= len(entries):
            return False
        entries[index] = entries[index].with_movement(parse_movement(movement))
        mapping[field] = entries
        self.store.set("mapping", mapping)
        return True

    def remove_address(self, field: str, index: int) -> bool:
        mapping: MappingState = self.store.get("mapping")
        entries = list(mapping.get(field, []))
        if index < 0 or index >= len(entries):
            return False
        del entries[index]
        if entries:
            mapping[field] = entries
        else:
            mapping.pop(field, None)
        self.store.set("mapping", mapping)
        return True

    # Export -------------------------------------------------------------------------------

    def build_json(self) -> Any:
        return build_json(self.store.get_state())

    def build_preview(self) -> Dict[str, Any]:
        return build_preview(self.store.get_state())

    def missing_required_fields(self) -> List[str]:
        state = self.store.get_state()
        return find_missing_required_fields(state["schema"], state["mapping"])

    # Helpers ------------------------------------------------------------------------------

    def _engine(self, workbook: WorkbookState) -> MovementEngine:
        return MovementEngine(
            workbook,
            evaluator=self.evaluator,
            jump_search_factor=self.settings.jump_search_factor,
        )

    def default_movement(self) -> OffsetMovement:
        default = self.settings.default_movement
        return OffsetMovement(dy=default.dy, dx=default.dx, jump_next=default.jump_next)

    @staticmethod
    def _require_workbook(state: Mapping[str, Any]) -> WorkbookState:
        workbook = state.get("workbook")
        if workbook is None:
            raise MissingWorkbookError("No workbook loaded")
        return workbook

    @staticmethod
    def _schema_index(state: Mapping[str, Any]) -> Optional[SchemaIndex]:
        schema = state.get("schema")
        if not schema:
            return None
        return SchemaIndex.from_schema(schema)

    @staticmethod
    def _retarget_followers(
        mapping: MappingState,
        workbook: WorkbookState,
        leader_field: str,
        leader_index: int,
        drow: int,
        dcol: int,
    ) -> None:
        for field in list(mapping):
            entries = list(mapping[field])
            changed = False
            for pos, addr in enumerate(entries):
                movement = addr.movement
                if not isinstance(movement, FollowMovement) or movement.leader != (leader_field, leader_index):
                    continue
                row, col = addr.row + drow, addr.col + dcol
                if not workbook.in_bounds(addr.sheet, row, col):
                    continue
                if any(other.key == (addr.sheet, row, col) for k, other in enumerate(entries) if k != pos):
                    continue
                entries[pos] = addr.moved_to(row, col)
                changed = True
            if changed:
                mapping[field] = entries


__all__ = ["INITIAL_STATE", "MappingStore"]
