"""Runtime settings and YAML-backed level loading."""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from blockplay.errors import ConfigValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class RuntimeSettings(BaseSettings):
    """Safety bounds and animation timing, overridable via ``BLOCKPLAY_*`` env vars."""

    model_config = SettingsConfigDict(env_prefix="BLOCKPLAY_", extra="forbid")

    max_chain: int = Field(default=500, ge=1)
    max_total_blocks: int = Field(default=10_000, ge=1)
    max_nesting_depth: int = Field(default=32, ge=1)
    max_repeat_times: int = Field(default=1000, ge=0)
    max_total_steps: int = Field(default=10_000, ge=1)
    move_duration_ms: float = Field(default=250.0, ge=0.0)
    turn_duration_ms: float = Field(default=200.0, ge=0.0)
    animation_scale: float = Field(default=1.0, ge=0.0)


def validate_config_dict(raw: object, model: type[ModelT]) -> ModelT:
    """Validate a pre-loaded config mapping against a pydantic model."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigValidationError("Config file root must be a mapping/object.")

    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise ConfigValidationError(str(exc)) from exc


def load_and_validate_config(path: Path, model: type[ModelT]) -> ModelT:
    """Load YAML config and validate with the provided pydantic model."""
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return validate_config_dict(raw, model)


def load_level_list(path: Path, model: type[ModelT]) -> list[ModelT]:
    """Load a YAML document holding ``levels: [...]`` and validate every entry."""
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigValidationError("Level file root must be a mapping/object.")
    entries = raw.get("levels", [])
    if not isinstance(entries, list) or not entries:
        raise ConfigValidationError("Level file must define a non-empty 'levels' list.")
    return [validate_config_dict(entry, model) for entry in entries]
