from __future__ import annotations

import logging
from typing import Any, Mapping

from sheetmap.address import CellAddress, FollowMovement, OffsetMovement, ScriptMovement
from sheetmap.movement import MovementEngine


def _addr(row: int, col: int, movement: Any = None, sheet: str = "Sheet1") -> CellAddress:
    return CellAddress(sheet=sheet, row=row, col=col, movement=movement or OffsetMovement(jump_next=False))


def test_fixed_offset_moves_and_prunes_out_of_bounds(grid) -> None:
    engine = MovementEngine(grid)
    mapping = {
        "name": [_addr(1, 0)],
        "amount": [_addr(9, 1)],
        "right": [_addr(2, 2, OffsetMovement(dy=0, dx=1, jump_next=False))],
    }

    result = engine.advance(mapping)

    assert result == {"name": [_addr(2, 0)]}
    assert mapping["amount"][0].row == 9


def test_jump_next_skips_empty_and_shadow_cells(workbook_factory) -> None:
    workbook = workbook_factory(
        [["a"], [""], [None], ["merged"], [""], ["b"], [""]],
        merges=[{"s": {"r": 3, "c": 0}, "e": {"r": 4, "c": 0}}],
    )
    engine = MovementEngine(workbook)
    jump = OffsetMovement(dy=1, dx=0, jump_next=True)

    first = engine.advance({"f": [_addr(0, 0, jump)]})
    assert first["f"][0].row == 3

    second = engine.advance(first)
    assert second["f"][0].row == 5

    assert engine.advance(second) == {}


def test_jump_next_search_is_bounded(workbook_factory) -> None:
    rows = [["x"]] + [[""]] * 20 + [["y"]]
    workbook = workbook_factory(rows)
    jump = OffsetMovement(dy=0, dx=0, jump_next=True)

    assert MovementEngine(workbook, jump_search_factor=1).advance({"f": [_addr(1, 0, jump)]}) == {}


def test_followers_mirror_leader_delta(grid) -> None:
    mapping = {
        "name": [_addr(1, 0, OffsetMovement(dy=2, dx=0, jump_next=False))],
        "note": [_addr(1, 2, FollowMovement(field="name", index=0))],
    }

    result = MovementEngine(grid).advance(mapping)

    assert (result["name"][0].row, result["name"][0].col) == (3, 0)
    assert (result["note"][0].row, result["note"][0].col) == (3, 2)
    assert result["note"][0].movement == FollowMovement(field="name", index=0)


def test_follower_of_dropped_leader_is_dropped(grid) -> None:
    mapping = {
        "name": [_addr(9, 0)],
        "note": [_addr(1, 2, FollowMovement(field="name", index=0))],
        "amount": [_addr(1, 1, FollowMovement(field="missing", index=0))],
    }

    assert MovementEngine(grid).advance(mapping) == {}


def test_follow_chains_and_cycles_drop_followers(grid) -> None:
    mapping = {
        "a": [_addr(1, 0)],
        "b": [_addr(1, 1, FollowMovement(field="a", index=0))],
        "c": [_addr(1, 2, FollowMovement(field="b", index=0))],
        "x": [_addr(2, 0, FollowMovement(field="y", index=0))],
        "y": [_addr(2, 1, FollowMovement(field="x", index=0))],
    }

    result = MovementEngine(grid).advance(mapping)

    assert set(result) == {"a", "b"}
    assert result["b"][0].row == 2


def test_follower_index_is_repointed_after_pruning(grid) -> None:
    mapping = {
        "lines": [_addr(9, 0), _addr(3, 0)],
        "note": [_addr(3, 2, FollowMovement(field="lines", index=1))],
    }

    result = MovementEngine(grid).advance(mapping)

    assert [addr.row for addr in result["lines"]] == [4]
    assert result["note"][0].row == 4
    assert result["note"][0].movement == FollowMovement(field="lines", index=0)


def test_script_delta_and_absolute_targets(grid) -> None:
    mapping = {
        "delta": [_addr(1, 0, ScriptMovement(script="2"))],
        "absolute": [_addr(1, 1, ScriptMovement(script="{'row': 5, 'col': 2}"))],
        "row_only": [_addr(1, 1, ScriptMovement(script="{'row': row + 1}"))],
        "uses_mapping": [_addr(1, 2, ScriptMovement(script="mapping['delta'][0]['row'] + 3 - row"))],
    }

    result = MovementEngine(grid).advance(mapping)

    assert (result["delta"][0].row, result["delta"][0].col) == (3, 0)
    assert (result["absolute"][0].row, result["absolute"][0].col) == (5, 2)
    assert (result["row_only"][0].row, result["row_only"][0].col) == (2, 1)
    assert result["uses_mapping"][0].row == 4


def test_failing_script_keeps_position(grid, log_records) -> None:
    mapping = {
        "broken": [_addr(2, 0, ScriptMovement(script="row +"))],
        "odd": [_addr(3, 0, ScriptMovement(script="'down'"))],
        "follower": [_addr(2, 1, FollowMovement(field="broken", index=0))],
    }

    result = MovementEngine(grid).advance(mapping)

    assert result["broken"][0].row == 2
    assert result["odd"][0].row == 3
    assert result["follower"][0].row == 2
    warnings = log_records.messages(logging.WARNING)
    assert any("broken[0]" in message for message in warnings)
    assert any("odd[0]" in message for message in warnings)


def test_custom_evaluator_is_used(grid) -> None:
    class FixedEvaluator:
        def __init__(self) -> None:
            self.calls = []

        def evaluate(self, script: str, context: Mapping[str, Any]) -> Any:
            self.calls.append((script, dict(context)))
            return 3

    evaluator = FixedEvaluator()
    result = MovementEngine(grid, evaluator=evaluator).advance({"f": [_addr(1, 0, ScriptMovement(script="ignored"))]})

    assert result["f"][0].row == 4
    script, context = evaluator.calls[0]
    assert script == "ignored"
    assert set(context) == {"row", "col", "sheet", "field", "index", "mapping"}
    assert context["mapping"]["f"][0]["script"] == "ignored"


def test_input_mapping_is_not_mutated(grid) -> None:
    mapping = {"name": [_addr(1, 0)]}
    before = {field: list(addrs) for field, addrs in mapping.items()}
    MovementEngine(grid).advance(mapping)
    assert mapping == before
