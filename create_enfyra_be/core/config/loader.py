"""
Defaults loader — reads an optional enfyra.yml of ScaffoldConfig fields.

The file seeds prompt defaults, and under ``--skip-prompts`` it is the
whole input.  Keys are ScaffoldConfig field names; an optional top-level
``enfyra:`` wrapper is accepted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from create_enfyra_be.core.models.config import ScaffoldConfig

logger = logging.getLogger(__name__)

DEFAULTS_FILE = "enfyra.yml"


class ConfigError(Exception):
    """Raised when a defaults file is unreadable or invalid."""


def find_defaults_file(start_dir: Path | None = None) -> Path | None:
    """Search for enfyra.yml starting from ``start_dir``, walking up.

    Returns:
        Path to the file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):
        candidate = current / DEFAULTS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_defaults(path: Path | None = None) -> dict[str, Any]:
    """Load field defaults.

    Args:
        path: Explicit file.  If None, searches upward; a missing file
            then yields ``{}``.

    Raises:
        ConfigError: Explicit file missing, unreadable YAML, or unknown keys.
    """
    if path is None:
        path = find_defaults_file()
        if path is None:
            return {}
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading defaults from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    data = data.get("enfyra", data)
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping under 'enfyra' in {path}")

    unknown = sorted(set(data) - set(ScaffoldConfig.model_fields))
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(unknown)}")

    logger.info("Loaded %d default(s) from %s", len(data), path)
    return data


def build_config(values: dict[str, Any]) -> ScaffoldConfig:
    """Validate a complete record (the non-interactive path).

    Raises:
        ConfigError: The values do not form a valid ScaffoldConfig.
    """
    try:
        return ScaffoldConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
