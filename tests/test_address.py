from __future__ import annotations

import copy

import pytest
from pydantic import ValidationError

from sheetmap.address import (
    CellAddress,
    FollowMovement,
    OffsetMovement,
    ScriptMovement,
    clone_mapping,
    col_to_letters,
    format_a1_cell,
    format_a1_range,
    letters_to_col,
    mapping_to_flat,
    parse_a1_cell,
    parse_a1_range,
    parse_movement,
)


@pytest.mark.parametrize(
    ("col", "letters"),
    [(0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA")],
)
def test_column_letters_round_trip(col: int, letters: str) -> None:
    assert col_to_letters(col) == letters
    assert letters_to_col(letters) == col


def test_a1_helpers() -> None:
    assert col_to_letters(-1) == ""
    assert format_a1_cell(9, 1) == "B10"
    assert parse_a1_cell("b10") == (9, 1)
    assert parse_a1_cell(" C3 ") == (2, 2)
    assert parse_a1_cell("A0") is None
    assert parse_a1_cell("10B") is None
    assert parse_a1_cell("") is None
    with pytest.raises(ValueError):
        letters_to_col("A1")


def test_a1_ranges_are_normalized() -> None:
    assert parse_a1_range("C3:A1") == ((0, 0), (2, 2))
    assert parse_a1_range("B2") == ((1, 1), (1, 1))
    assert parse_a1_range("A1:??") is None
    assert format_a1_range((0, 0), (2, 2)) == "A1:C3"
    assert format_a1_range((2, 2), (0, 0)) == "A1:C3"


def test_a1_parsing_accepts_sheet_notation_variants() -> None:
    assert parse_a1_cell("$B$10") == (9, 1)
    assert parse_a1_range("b2:c3") == ((1, 1), (2, 2))
    assert parse_a1_range("A:C") is None
    assert parse_a1_range("A0:B2") is None
    assert letters_to_col("aa") == 26
    assert col_to_letters(18277) == "ZZZ"
    with pytest.raises(ValueError):
        letters_to_col("")


def test_default_movement_is_offset_with_jump() -> None:
    address = CellAddress(sheet="S", row=1, col=2)
    assert address.movement == OffsetMovement(dy=1, dx=0, jump_next=True)
    assert address.a1 == "C2"


def test_flat_offset_shape_is_normalized() -> None:
    address = CellAddress.model_validate({"sheet": "S", "row": 0, "col": 0, "dy": 2, "dx": 1, "jumpNext": True})
    assert address.movement == OffsetMovement(dy=2, dx=1, jump_next=True)
    assert address.to_flat() == {"sheet": "S", "row": 0, "col": 0, "dy": 2, "dx": 1, "jumpNext": True}

    no_jump = CellAddress.model_validate({"sheet": "S", "row": 0, "col": 0, "dy": 1})
    assert no_jump.movement == OffsetMovement(dy=1, dx=0, jump_next=False)


def test_flat_follow_and_script_shapes() -> None:
    follower = CellAddress.model_validate({"sheet": "S", "row": 1, "col": 1, "follow": {"field": "a", "index": 2}})
    assert follower.movement == FollowMovement(field="a", index=2)
    assert follower.movement.leader == ("a", 2)
    assert follower.to_flat()["follow"] == {"field": "a", "index": 2}

    scripted = CellAddress.model_validate({"sheet": "S", "row": 1, "col": 1, "script": "2"})
    assert scripted.movement == ScriptMovement(script="2")


def test_mixed_movement_variants_are_rejected() -> None:
    with pytest.raises(ValidationError, match="Ambiguous movement"):
        CellAddress.model_validate({"sheet": "S", "row": 0, "col": 0, "dy": 1, "script": "1"})
    with pytest.raises(ValidationError, match="Ambiguous movement"):
        CellAddress.model_validate({"sheet": "S", "row": 0, "col": 0, "follow": {"field": "a"}, "jumpNext": True})
    with pytest.raises(ValidationError, match="Movement given twice"):
        CellAddress.model_validate(
            {"sheet": "S", "row": 0, "col": 0, "movement": {"kind": "script", "script": "1"}, "dy": 1}
        )
    with pytest.raises(ValueError, match="Ambiguous movement"):
        parse_movement({"dy": 1, "script": "1"})


def test_negative_coordinates_are_rejected() -> None:
    with pytest.raises(ValidationError):
        CellAddress(sheet="S", row=-1, col=0)


def test_parse_movement_accepts_all_shapes() -> None:
    assert parse_movement({}) == OffsetMovement()
    assert parse_movement({"kind": "follow", "field": "x"}) == FollowMovement(field="x", index=0)
    assert parse_movement({"script": "row"}) == ScriptMovement(script="row")
    model = OffsetMovement(dy=3)
    assert parse_movement(model) is model
    with pytest.raises(ValueError):
        parse_movement("down")


def test_addresses_are_immutable_values() -> None:
    address = CellAddress(sheet="S", row=1, col=1, movement=OffsetMovement(dy=2, jump_next=False))
    moved = address.moved_to(4, 0)

    assert (address.row, address.col) == (1, 1)
    assert (moved.row, moved.col) == (4, 0)
    assert moved.movement == address.movement
    assert copy.deepcopy(address) is address
    with pytest.raises(ValidationError):
        address.row = 5  # type: ignore[misc]


def test_clone_mapping_is_reference_independent() -> None:
    mapping = {"a": [CellAddress(sheet="S", row=0, col=0)]}
    clone = clone_mapping(mapping)
    clone["a"].append(CellAddress(sheet="S", row=1, col=0))
    clone["b"] = []

    assert len(mapping["a"]) == 1 and "b" not in mapping
    assert mapping_to_flat(mapping) == {"a": [{"sheet": "S", "row": 0, "col": 0, "dy": 1, "dx": 0, "jumpNext": True}]}
