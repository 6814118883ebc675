"""Configuration helpers for the sheetmap engine.

Provides a loader for the engine settings YAML with schema validation so
movement defaults, auto-detection rules and the Confirm & Next mode can be
tuned without touching code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sheetmap.core.errors import ConfigError

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

ConfirmNextMode = Literal["shift_row", "advance_field"]


class DefaultMovement(BaseModel):
    """Movement applied to addresses created by a drop."""

    model_config = ConfigDict(extra="forbid")

    dy: int = 1
    dx: int = 0
    jump_next: bool = True


class EngineSettings(BaseModel):
    """Validated engine settings."""

    model_config = ConfigDict(extra="allow")

    jump_search_factor: int = Field(default=4, ge=1)
    default_movement: DefaultMovement = Field(default_factory=DefaultMovement)
    confirm_next_mode: ConfirmNextMode = "shift_row"
    autodetect_rules: Dict[str, str] = Field(default_factory=dict)
    log_level: str = "INFO"

    @field_validator("autodetect_rules")
    @classmethod
    def _lower_rule_keys(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {str(key).lower(): str(cell).strip().upper() for key, cell in value.items()}


def load_settings(path: str | Path | None = None) -> EngineSettings:
    """Load engine settings from YAML, defaulting to the bundled ``settings.yaml``."""

    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    raw = _load_yaml(settings_path)
    try:
        return EngineSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {settings_path}: {exc}") from exc


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Settings file is not valid YAML: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Settings must be a mapping at the top level")
    return data


__all__ = [
    "CONFIG_DIR",
    "DEFAULT_SETTINGS_PATH",
    "ConfirmNextMode",
    "DefaultMovement",
    "EngineSettings",
    "load_settings",
]
