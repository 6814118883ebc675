"""
Spreadsheet-to-JSON-Schema mapping engine.
"""

from .address import CellAddress, FollowMovement, OffsetMovement, ScriptMovement, parse_movement
from .autodetect import AutoDetector
from .exporter import build_json, build_preview, find_missing_required_fields, post_json
from .mapping_store import MappingStore
from .movement import MovementEngine
from .schema import SchemaIndex, parse_schema
from .store import ObservableStore
from .templates import load_template, save_template
from .workbook import WorkbookState

__version__ = "0.1.0"

__all__ = [
    "AutoDetector",
    "CellAddress",
    "FollowMovement",
    "MappingStore",
    "MovementEngine",
    "ObservableStore",
    "OffsetMovement",
    "SchemaIndex",
    "ScriptMovement",
    "WorkbookState",
    "build_json",
    "build_preview",
    "find_missing_required_fields",
    "load_template",
    "parse_movement",
    "parse_schema",
    "post_json",
    "save_template",
]
