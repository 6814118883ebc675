"""Movement engine computing where each mapped address goes on Confirm & Next.

PROCESS OVERVIEW
1. Pass 1 moves every non-follow address (script, jump-next, fixed offset),
   bounds-checks the result and records the realized (drow, dcol) per
   ``(field, index)``.
2. Pass 2 moves each follower by its leader's recorded delta. A leader with no
   delta (dropped, or itself a follower) drops the follower as well; follow
   chains and cycles therefore degrade to "no movement" instead of raising.
3. Fields whose addresses were all dropped vanish from the result, and
   surviving followers are re-pointed at their leader's new index.
"""

from __future__ import annotations

import logging
from numbers import Integral, Real
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sheetmap.address import (
    CellAddress,
    FollowMovement,
    MappingState,
    OffsetMovement,
    ScriptMovement,
    mapping_to_flat,
)
from sheetmap.scripting import ExpressionEvaluator, ScriptEvaluator
from sheetmap.utils.log import get_logger
from sheetmap.workbook import WorkbookState, is_empty

LeaderKey = Tuple[str, int]
Delta = Tuple[int, int]

DEFAULT_JUMP_SEARCH_FACTOR = 4


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Integral):
        return int(value)
    if isinstance(value, Real) and float(value).is_integer():
        return int(value)
    return None


class MovementEngine:
    """Advance a mapping over a workbook grid."""

    def __init__(
        self,
        workbook: WorkbookState,
        *,
        evaluator: ScriptEvaluator | None = None,
        jump_search_factor: int = DEFAULT_JUMP_SEARCH_FACTOR,
        logger: logging.Logger | None = None,
    ) -> None:
        self.workbook = workbook
        self.evaluator = evaluator or ExpressionEvaluator()
        self.jump_search_factor = max(1, int(jump_search_factor))
        self.logger = logger or get_logger("movement")

    def advance(self, mapping: Mapping[str, List[CellAddress]]) -> MappingState:
        """Return the mapping after one Confirm & Next step."""

        script_view = mapping_to_flat(mapping)
        deltas: Dict[LeaderKey, Delta] = {}
        moved: Dict[str, List[Optional[CellAddress]]] = {}

        for field, addresses in mapping.items():
            results: List[Optional[CellAddress]] = []
            for index, address in enumerate(addresses):
                if isinstance(address.movement, FollowMovement):
                    results.append(None)
                    continue
                target = self._target(field, index, address, script_view)
                if target is None or not self.workbook.in_bounds(address.sheet, *target):
                    self.logger.debug("Dropping %s[%d] at %s: no valid target", field, index, address.a1)
                    results.append(None)
                    continue
                deltas[(field, index)] = (target[0] - address.row, target[1] - address.col)
                results.append(address.moved_to(*target))
            moved[field] = results

        for field, addresses in mapping.items():
            for index, address in enumerate(addresses):
                movement = address.movement
                if not isinstance(movement, FollowMovement):
                    continue
                delta = deltas.get(movement.leader)
                if delta is None:
                    self.logger.debug(
                        "Dropping follower %s[%d]: leader %s[%d] produced no delta",
                        field,
                        index,
                        movement.field,
                        movement.index,
                    )
                    continue
                row, col = address.row + delta[0], address.col + delta[1]
                if self.workbook.in_bounds(address.sheet, row, col):
                    moved[field][index] = address.moved_to(row, col)

        return self._compact(moved)

    # Strategies -------------------------------------------------------------------

    def _target(
        self,
        field: str,
        index: int,
        address: CellAddress,
        script_view: Mapping[str, Any],
    ) -> Optional[Tuple[int, int]]:
        movement = address.movement
        if isinstance(movement, ScriptMovement):
            return self._run_script(field, index, address, movement, script_view)
        if isinstance(movement, OffsetMovement):
            if movement.jump_next:
                return self._jump_next(address, movement)
            return address.row + movement.dy, address.col + movement.dx
        raise TypeError(f"Unsupported movement: {movement!r}")

    def _jump_next(self, address: CellAddress, movement: OffsetMovement) -> Optional[Tuple[int, int]]:
        sheet = address.sheet
        limit = max(1, self.workbook.row_count(sheet) * self.jump_search_factor)
        row, col = address.row, address.col
        for _ in range(limit):
            row += movement.dy
            col += movement.dx
            if not self.workbook.in_bounds(sheet, row, col):
                return None
            if self.workbook.is_shadow(sheet, row, col):
                continue
            if is_empty(self.workbook.value_at(sheet, row, col)):
                continue
            return row, col
        return None

    def _run_script(
        self,
        field: str,
        index: int,
        address: CellAddress,
        movement: ScriptMovement,
        script_view: Mapping[str, Any],
    ) -> Tuple[int, int]:
        context = {
            "row": address.row,
            "col": address.col,
            "sheet": address.sheet,
            "field": field,
            "index": index,
            "mapping": script_view,
        }
        try:
            result = self.evaluator.evaluate(movement.script, context)
        except Exception as exc:  # noqa: BLE001 - a user script must never abort the batch
            self.logger.warning("Movement script for %s[%d] failed, keeping position: %s", field, index, exc)
            return address.row, address.col

        delta = _as_int(result)
        if delta is not None:
            return address.row + delta, address.col
        if isinstance(result, Mapping) and ("row" in result or "col" in result):
            row = _as_int(result["row"]) if "row" in result else address.row
            col = _as_int(result["col"]) if "col" in result else address.col
            if row is not None and col is not None:
                return row, col
        self.logger.warning(
            "Movement script for %s[%d] returned %r; expected a number or {row, col}", field, index, result
        )
        return address.row, address.col

    # Output ----------------------------------------------------------------------

    @staticmethod
    def _compact(moved: Mapping[str, List[Optional[CellAddress]]]) -> MappingState:
        positions: Dict[LeaderKey, int] = {}
        output: MappingState = {}
        for field, results in moved.items():
            survivors: List[CellAddress] = []
            for index, address in enumerate(results):
                if address is None:
                    continue
                positions[(field, index)] = len(survivors)
                survivors.append(address)
            if survivors:
                output[field] = survivors

        for field, survivors in output.items():
            for pos, address in enumerate(survivors):
                movement = address.movement
                if not isinstance(movement, FollowMovement):
                    continue
                new_index = positions.get(movement.leader)
                if new_index is not None and new_index != movement.index:
                    survivors[pos] = address.with_movement(
                        FollowMovement(field=movement.field, index=new_index)
                    )
        return output


__all__ = ["DEFAULT_JUMP_SEARCH_FACTOR", "MovementEngine"]
