"""Custom exceptions used across sheetmap."""


class SheetMapError(Exception):
    """Base error for the engine."""


class ConfigError(SheetMapError):
    """Configuration related error."""


class UnknownKeyError(SheetMapError, KeyError):
    """Raised when writing a key the store does not declare."""


class UnknownSheetError(SheetMapError, KeyError):
    """Raised when a sheet name is not part of the loaded workbook."""


class SchemaError(SheetMapError):
    """Base error for JSON Schema handling."""


class InvalidSchemaError(SchemaError):
    """Raised when schema text cannot be parsed into an object."""


class SchemaMissingPropertiesError(SchemaError):
    """Raised when no ``properties`` can be resolved from a schema."""


class ScriptError(SheetMapError):
    """Raised when a movement script cannot be parsed or evaluated."""


class ExportStateError(SheetMapError):
    """Raised when the state lacks what an operation needs (workbook, schema)."""


class MissingWorkbookError(ExportStateError):
    """Raised when an operation needs a loaded workbook."""


class MissingSchemaError(ExportStateError):
    """Raised when an operation needs a loaded schema."""


class NoConfirmedRecordsError(ExportStateError):
    """Raised when a single-record export is requested before any confirm."""


class ExportUploadError(SheetMapError):
    """Raised when posting an export to a remote endpoint fails."""


class TemplateError(SheetMapError):
    """Raised when a mapping template cannot be saved or loaded."""
