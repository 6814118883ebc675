"""Core primitives shared by sheetmap modules."""

from .errors import (
    ConfigError,
    ExportStateError,
    ExportUploadError,
    InvalidSchemaError,
    MissingSchemaError,
    MissingWorkbookError,
    NoConfirmedRecordsError,
    SchemaError,
    SchemaMissingPropertiesError,
    ScriptError,
    SheetMapError,
    TemplateError,
    UnknownKeyError,
    UnknownSheetError,
)

__all__ = [
    "ConfigError",
    "ExportStateError",
    "ExportUploadError",
    "InvalidSchemaError",
    "MissingSchemaError",
    "MissingWorkbookError",
    "NoConfirmedRecordsError",
    "SchemaError",
    "SchemaMissingPropertiesError",
    "ScriptError",
    "SheetMapError",
    "TemplateError",
    "UnknownKeyError",
    "UnknownSheetError",
]
