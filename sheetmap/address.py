"""Cell addresses, movement configuration and A1 conversion."""

# Module responsibilities:
# - Convert between 0-based (row, col) indices and A1 references.
# - Define the immutable CellAddress value type and its movement variants.
# - Normalize the flat collaborator dict shape ({sheet,row,col,dy,dx,jumpNext}, ...)
#   into exactly one active movement variant.

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from openpyxl.utils.cell import (
    column_index_from_string,
    coordinate_from_string,
    get_column_letter,
    range_boundaries,
)
from openpyxl.utils.exceptions import CellCoordinatesException
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

_OFFSET_KEYS = ("dy", "dx", "jumpNext", "jump_next", "step")
_FOLLOW_KEYS = ("follow",)
_SCRIPT_KEYS = ("script",)


# A1 helpers -------------------------------------------------------------------


def col_to_letters(idx: int) -> str:
    """Return the column letters for a 0-based column index (0 -> A, 26 -> AA)."""

    col = int(idx)
    if col < 0:
        return ""
    return get_column_letter(col + 1)


def letters_to_col(letters: str) -> int:
    """Return the 0-based column index for column letters.

    Raises:
        ValueError: When ``letters`` is not a valid column name.
    """

    return column_index_from_string(str(letters or "").strip().upper()) - 1


def parse_a1_cell(a1: str) -> Optional[Tuple[int, int]]:
    """Parse ``"B10"`` into ``(row, col)`` = ``(9, 1)``; ``None`` when invalid."""

    try:
        letters, row = coordinate_from_string(str(a1 or "").strip())
        col = column_index_from_string(letters)
    except (CellCoordinatesException, ValueError):
        return None
    return row - 1, col - 1


def format_a1_cell(row: int, col: int) -> str:
    return f"{col_to_letters(col)}{row + 1}"


def parse_a1_range(text: str) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
    """Parse ``"A1:C3"`` (or a single cell) into normalized 0-based start/end corners."""

    if not text:
        return None
    try:
        min_col, min_row, max_col, max_row = range_boundaries(str(text).strip())
    except (CellCoordinatesException, ValueError):
        return None
    if None in (min_col, min_row, max_col, max_row) or min(min_row, max_row) < 1:
        return None
    top, bottom = sorted((min_row - 1, max_row - 1))
    left, right = sorted((min_col - 1, max_col - 1))
    return (top, left), (bottom, right)


def format_a1_range(start: Tuple[int, int], end: Tuple[int, int]) -> str:
    top, bottom = sorted((start[0], end[0]))
    left, right = sorted((start[1], end[1]))
    return f"{format_a1_cell(top, left)}:{format_a1_cell(bottom, right)}"


# Movement variants --------------------------------------------------------------


class OffsetMovement(BaseModel):
    """Fixed (dy, dx) step, optionally seeking the next non-empty cell."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["offset"] = "offset"
    dy: int = 1
    dx: int = 0
    jump_next: bool = True

    def to_flat(self) -> Dict[str, Any]:
        return {"dy": self.dy, "dx": self.dx, "jumpNext": self.jump_next}


class FollowTarget(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    index: int = Field(default=0, ge=0)


class FollowMovement(BaseModel):
    """Mirror the delta realized by another field's entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["follow"] = "follow"
    field: str
    index: int = Field(default=0, ge=0)

    @property
    def leader(self) -> Tuple[str, int]:
        return self.field, self.index

    def to_flat(self) -> Dict[str, Any]:
        return {"follow": {"field": self.field, "index": self.index}}


class ScriptMovement(BaseModel):
    """User expression returning a row delta or absolute ``{row, col}``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["script"] = "script"
    script: str

    def to_flat(self) -> Dict[str, Any]:
        return {"script": self.script}


Movement = Annotated[
    Union[OffsetMovement, FollowMovement, ScriptMovement],
    Field(discriminator="kind"),
]


def _movement_from_flat(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Pop flat movement keys from ``payload`` and return a tagged movement dict."""

    groups = {
        "offset": [key for key in _OFFSET_KEYS if key in payload],
        "follow": [key for key in _FOLLOW_KEYS if key in payload],
        "script": [key for key in _SCRIPT_KEYS if key in payload],
    }
    active = [name for name, keys in groups.items() if keys]
    if len(active) > 1:
        raise ValueError(f"Ambiguous movement config; found keys for {', '.join(active)}")
    if not active:
        return None

    kind = active[0]
    values = {key: payload.pop(key) for key in groups[kind]}
    if kind == "script":
        return {"kind": "script", "script": values["script"]}
    if kind == "follow":
        target = FollowTarget.model_validate(values["follow"])
        return {"kind": "follow", "field": target.field, "index": target.index}

    dy = values.get("dy", values.get("step", 1))
    jump_next = values.get("jumpNext", values.get("jump_next", False))
    return {
        "kind": "offset",
        "dy": dy if dy is not None else 1,
        "dx": values.get("dx") if values.get("dx") is not None else 0,
        "jump_next": bool(jump_next),
    }


_MOVEMENT_ADAPTER: TypeAdapter = TypeAdapter(Movement)


def parse_movement(raw: Any) -> Union[OffsetMovement, FollowMovement, ScriptMovement]:
    """Build a movement from a model, a tagged dict (``kind``) or the flat shape.

    An empty flat dict yields the default ``OffsetMovement``.
    """

    if isinstance(raw, (OffsetMovement, FollowMovement, ScriptMovement)):
        return raw
    if not isinstance(raw, Mapping):
        raise ValueError(f"Movement must be a mapping, got {type(raw).__name__}")
    if "kind" in raw:
        return _MOVEMENT_ADAPTER.validate_python(dict(raw))
    tagged = _movement_from_flat(dict(raw))
    if tagged is None:
        return OffsetMovement()
    return _MOVEMENT_ADAPTER.validate_python(tagged)


# CellAddress -------------------------------------------------------------------


class CellAddress(BaseModel):
    """Immutable worksheet coordinate plus its movement configuration.

    Accepts either the nested form ``{"sheet", "row", "col", "movement": {...}}``
    or the flat collaborator form where ``dy``/``dx``/``jumpNext``, ``follow`` or
    ``script`` sit next to the coordinates. Mixing variants is rejected.
    """

    model_config = ConfigDict(frozen=True)

    sheet: str
    row: int = Field(ge=0)
    col: int = Field(ge=0)
    movement: Movement = Field(default_factory=OffsetMovement)

    @model_validator(mode="before")
    @classmethod
    def _normalize_flat(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        payload = dict(data)
        flat_keys = [key for key in (*_OFFSET_KEYS, *_FOLLOW_KEYS, *_SCRIPT_KEYS) if key in payload]
        if "movement" in payload:
            if flat_keys:
                raise ValueError(
                    f"Movement given twice (nested and flat keys {', '.join(flat_keys)})"
                )
            return payload
        movement = _movement_from_flat(payload)
        if movement is not None:
            payload["movement"] = movement
        return payload

    def __deepcopy__(self, memo: Optional[Dict[int, Any]] = None) -> "CellAddress":
        return self

    @property
    def key(self) -> Tuple[str, int, int]:
        return self.sheet, self.row, self.col

    @property
    def a1(self) -> str:
        return format_a1_cell(self.row, self.col)

    def same_cell(self, other: "CellAddress") -> bool:
        return self.key == other.key

    def moved_to(self, row: int, col: int, sheet: Optional[str] = None) -> "CellAddress":
        """Return a copy at a new position keeping the movement config."""

        return self.model_copy(update={"sheet": sheet or self.sheet, "row": row, "col": col})

    def with_movement(self, movement: Union[OffsetMovement, FollowMovement, ScriptMovement]) -> "CellAddress":
        return self.model_copy(update={"movement": movement})

    def to_flat(self) -> Dict[str, Any]:
        """Return the flat dict shape used by templates and UI collaborators."""

        payload: Dict[str, Any] = {"sheet": self.sheet, "row": self.row, "col": self.col}
        payload.update(self.movement.to_flat())
        return payload


MappingState = Dict[str, List[CellAddress]]


def clone_mapping(mapping: Optional[Mapping[str, List[CellAddress]]]) -> MappingState:
    """Return a reference-independent copy of ``mapping`` (new dict, new lists)."""

    return {field: list(addresses) for field, addresses in (mapping or {}).items()}


def coerce_mapping(raw: Optional[Mapping[str, Any]]) -> MappingState:
    """Validate a mapping of flat dicts / CellAddress objects into a MappingState."""

    result: MappingState = {}
    for field, addresses in (raw or {}).items():
        result[str(field)] = [
            addr if isinstance(addr, CellAddress) else CellAddress.model_validate(addr)
            for addr in addresses
        ]
    return result


def mapping_to_flat(mapping: Optional[Mapping[str, List[CellAddress]]]) -> Dict[str, List[Dict[str, Any]]]:
    return {field: [addr.to_flat() for addr in addresses] for field, addresses in (mapping or {}).items()}


__all__ = [
    "CellAddress",
    "FollowMovement",
    "MappingState",
    "Movement",
    "OffsetMovement",
    "ScriptMovement",
    "clone_mapping",
    "coerce_mapping",
    "col_to_letters",
    "format_a1_cell",
    "format_a1_range",
    "letters_to_col",
    "mapping_to_flat",
    "parse_movement",
    "parse_a1_cell",
    "parse_a1_range",
]
