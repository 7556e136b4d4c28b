"""
Configuration loading for extends.

Each extend declares a pydantic model for its settings. The file format is
picked from the suffix:

    .toml         postgres, pihole
    .json         text_blob, http_access_log
    .yaml / .yml  anything else
"""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigError

logger = logging.getLogger("extends.config")

ConfigT = TypeVar("ConfigT", bound="ExtendConfig")


class ExtendConfig(BaseModel):
    """Base for per-extend configuration. Unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Parse a config file into a dict based on its suffix"""
    suffix = path.suffix.lower()
    with open(path, "rb") as f:
        raw = f.read()

    if suffix == ".toml":
        data = tomllib.loads(raw.decode("utf-8"))
    elif suffix == ".json":
        data = json.loads(raw.decode("utf-8"))
    elif suffix in (".yaml", ".yml"):
        data = yaml.safe_load(raw) or {}
    else:
        raise ConfigError(f"Unsupported config format '{suffix}' for {path}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must hold a table/object at the top level")
    return data


def load_config(model: Type[ConfigT], path: Optional[Path], required: bool = False) -> ConfigT:
    """
    Load a config model from file.

    Args:
        model: pydantic model class to build
        path: config file path, None for defaults
        required: raise ConfigError instead of falling back to defaults when missing

    Raises:
        ConfigError: on unreadable, unparseable or invalid config
    """
    if path is None or not Path(path).exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug(f"Config file not found: {path}, using defaults")
        return model()

    path = Path(path)
    try:
        data = read_config_file(path)
    except ConfigError:
        raise
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
        # tomllib.TOMLDecodeError and json.JSONDecodeError are ValueErrors
        raise ConfigError(f"Error parsing {path}: {e}") from e

    logger.debug(f"Loaded config from {path}: {sorted(data)}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
