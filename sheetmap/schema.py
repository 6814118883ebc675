"""JSON Schema helpers: property resolution, required fields and labels."""

# Module responsibilities:
# - Resolve the effective item schema of object / array / ``cells``-wrapped roots.
# - Expose a flat field -> property metadata index for mapping and export.
# - Parse schema text with user-facing errors.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sheetmap.core.errors import InvalidSchemaError, SchemaMissingPropertiesError

SchemaMeta = Dict[str, Any]


def _unwrap(schema: Any) -> Optional[Mapping[str, Any]]:
    """Return the object schema holding the record fields at one schema level."""

    if not isinstance(schema, Mapping):
        return None
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        return None
    cells = properties.get("cells")
    if isinstance(cells, Mapping):
        if isinstance(cells.get("properties"), Mapping):
            return cells
        items = cells.get("items")
        if isinstance(items, Mapping) and isinstance(items.get("properties"), Mapping):
            return items
    return schema


def effective_item_schema(schema: Any) -> Optional[Mapping[str, Any]]:
    """Return the object schema describing one record, or ``None``."""

    direct = _unwrap(schema)
    if direct is not None:
        return direct
    if isinstance(schema, Mapping) and schema.get("type") == "array":
        return _unwrap(schema.get("items"))
    return None


def resolve_properties(schema: Any) -> Optional[Dict[str, SchemaMeta]]:
    """Return the record's ``properties`` map, unwrapping ``cells`` and array roots."""

    item = effective_item_schema(schema)
    if item is None:
        return None
    return dict(item["properties"])


def resolve_required(schema: Any) -> List[str]:
    """Return ``required`` at the same level :func:`resolve_properties` resolves."""

    item = effective_item_schema(schema)
    if item is None:
        return []
    required = item.get("required") or []
    if not isinstance(required, (list, tuple)):
        return []
    return [str(name) for name in required]


def is_array_meta(meta: Optional[Mapping[str, Any]]) -> bool:
    return bool(meta) and meta.get("type") == "array"


def parse_schema(text: str) -> Dict[str, Any]:
    """Parse raw JSON text into a schema object."""

    if not isinstance(text, str):
        raise TypeError("Schema input must be a string")
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidSchemaError("Invalid JSON syntax") from exc
    if not isinstance(obj, dict):
        raise InvalidSchemaError("Schema must be an object")
    return obj


def validate_schema_object(schema: Any) -> List[str]:
    """Return the field names of ``schema`` or raise when none resolve."""

    if not isinstance(schema, Mapping):
        raise InvalidSchemaError("Schema must be an object")
    properties = resolve_properties(schema)
    if properties is None:
        raise SchemaMissingPropertiesError('Schema missing "properties"')
    return list(properties)


def get_schema_fields(text: str) -> Tuple[Dict[str, Any], List[str]]:
    schema = parse_schema(text)
    return schema, validate_schema_object(schema)


def truncate_description(description: Any) -> str:
    if not isinstance(description, str):
        return ""
    return description.split(":", 1)[0]


def label_from_meta(meta: Optional[Mapping[str, Any]], fallback: str) -> str:
    """UI label: description up to the first colon, else title, else ``fallback``."""

    meta = meta or {}
    description = meta.get("description")
    from_description = truncate_description(description) if isinstance(description, str) else ""
    return from_description or meta.get("title") or fallback


@dataclass(frozen=True)
class SchemaIndex:
    """Flat view of a schema's record fields."""

    properties: Dict[str, SchemaMeta]
    required: Tuple[str, ...] = ()
    field_names: Tuple[str, ...] = field(default=())

    @classmethod
    def from_schema(cls, schema: Any) -> "SchemaIndex":
        properties = resolve_properties(schema)
        if properties is None:
            raise SchemaMissingPropertiesError('Schema missing "properties"')
        return cls(
            properties=properties,
            required=tuple(resolve_required(schema)),
            field_names=tuple(properties),
        )

    def __contains__(self, name: object) -> bool:
        return name in self.properties

    def meta(self, name: str) -> SchemaMeta:
        value = self.properties.get(name)
        return dict(value) if isinstance(value, Mapping) else {}

    def is_array(self, name: str) -> bool:
        return is_array_meta(self.meta(name))

    def is_required(self, name: str) -> bool:
        return name in self.required

    def label(self, name: str) -> str:
        return label_from_meta(self.meta(name), name)


__all__ = [
    "SchemaIndex",
    "effective_item_schema",
    "get_schema_fields",
    "is_array_meta",
    "label_from_meta",
    "parse_schema",
    "resolve_properties",
    "resolve_required",
    "truncate_description",
    "validate_schema_object",
]
