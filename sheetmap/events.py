"""Payloads emitted by the drag/drop and keyboard input collaborators."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FieldDropped(BaseModel):
    """A schema field was dropped onto a worksheet cell."""

    model_config = ConfigDict(frozen=True)

    field: str
    row: int
    col: int
    sheet: Optional[str] = None


class OverlayMoved(BaseModel):
    """An existing mapping overlay was dragged to another cell."""

    model_config = ConfigDict(frozen=True)

    field: str
    index: int = Field(ge=0)
    row: int
    col: int
    sheet: Optional[str] = None


MappingEvent = Union[FieldDropped, OverlayMoved]

__all__ = ["FieldDropped", "MappingEvent", "OverlayMoved"]
