"""Workbook grid model with merged-range shadow cell classification."""

# Module responsibilities:
# - Hold the already-parsed workbook (sheet names, 2-D cell grids, merge ranges).
# - Precompute, once per workbook, which cells are merge "shadows" and their anchors.
# - Answer bounds / emptiness / value lookups used by movement and export.

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

CellPos = Tuple[int, int]


class CellRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    r: int = Field(ge=0)
    c: int = Field(ge=0)


class MergeRange(BaseModel):
    """Merged block in the SheetJS ``{s: {r, c}, e: {r, c}}`` shape."""

    model_config = ConfigDict(frozen=True)

    s: CellRef
    e: CellRef

    @property
    def top_left(self) -> CellPos:
        return min(self.s.r, self.e.r), min(self.s.c, self.e.c)

    @property
    def bottom_right(self) -> CellPos:
        return max(self.s.r, self.e.r), max(self.s.c, self.e.c)


def is_empty(value: Any) -> bool:
    return value is None or value == ""


class WorkbookState(BaseModel):
    """Parsed workbook handed over by the file-loading collaborator.

    The model is frozen and its grids are stored as tuples, so a single instance
    is shared between store snapshots instead of being copied on every read.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sheets: Tuple[str, ...]
    active_sheet: str = Field(alias="activeSheet")
    data: Dict[str, Tuple[Tuple[Any, ...], ...]] = Field(default_factory=dict)
    merges: Dict[str, Tuple[MergeRange, ...]] = Field(default_factory=dict)

    _shadow: Dict[str, Dict[CellPos, CellPos]] = PrivateAttr(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_active_sheet(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("activeSheet") or data.get("active_sheet")):
            sheets = data.get("sheets") or []
            if sheets:
                data = {**data, "activeSheet": sheets[0]}
        return data

    @model_validator(mode="after")
    def _check_active_sheet(self) -> "WorkbookState":
        if self.active_sheet not in self.sheets:
            raise ValueError(f"activeSheet {self.active_sheet!r} is not one of {list(self.sheets)}")
        return self

    def model_post_init(self, __context: Any) -> None:
        shadow: Dict[str, Dict[CellPos, CellPos]] = {}
        for sheet, ranges in self.merges.items():
            cells: Dict[CellPos, CellPos] = {}
            rows = self.data.get(sheet, ())
            last_row = len(rows) - 1
            last_col = max((len(row) for row in rows), default=0) - 1
            for merge in ranges:
                (top, left), (bottom, right) = merge.top_left, merge.bottom_right
                # Only in-grid cells are ever queried.
                bottom, right = min(bottom, last_row), min(right, last_col)
                for row in range(top, bottom + 1):
                    for col in range(left, right + 1):
                        if (row, col) != (top, left):
                            cells[(row, col)] = (top, left)
            shadow[sheet] = cells
        self._shadow = shadow

    def __deepcopy__(self, memo: Optional[Dict[int, Any]] = None) -> "WorkbookState":
        return self

    def with_active_sheet(self, sheet: str) -> "WorkbookState":
        return self.model_copy(update={"active_sheet": sheet})

    # Grid queries ---------------------------------------------------------------

    def rows(self, sheet: str) -> Tuple[Tuple[Any, ...], ...]:
        return self.data.get(sheet, ())

    def row_count(self, sheet: str) -> int:
        return len(self.rows(sheet))

    def col_count(self, sheet: str, row: int) -> int:
        rows = self.rows(sheet)
        if row < 0 or row >= len(rows):
            return 0
        return len(rows[row])

    def in_bounds(self, sheet: str, row: int, col: int) -> bool:
        return row >= 0 and col >= 0 and row < self.row_count(sheet) and col < self.col_count(sheet, row)

    def value_at(self, sheet: str, row: int, col: int) -> Any:
        if not self.in_bounds(sheet, row, col):
            return None
        return self.data[sheet][row][col]

    def is_shadow(self, sheet: str, row: int, col: int) -> bool:
        return (row, col) in self._shadow.get(sheet, {})

    def anchor_of(self, sheet: str, row: int, col: int) -> Optional[CellPos]:
        """Return the top-left of the merge covering a shadow cell, else ``None``."""

        return self._shadow.get(sheet, {}).get((row, col))

    def shadow_cells(self, sheet: str) -> frozenset:
        return frozenset(self._shadow.get(sheet, {}))

    def display_value(self, sheet: str, row: int, col: int) -> Any:
        """Cell value, falling back to the merge anchor for an empty shadow cell."""

        value = self.value_at(sheet, row, col)
        if is_empty(value):
            anchor = self.anchor_of(sheet, row, col)
            if anchor is not None:
                return self.value_at(sheet, *anchor)
        return value


__all__ = ["CellRef", "MergeRange", "WorkbookState", "is_empty"]
