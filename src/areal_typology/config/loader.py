"""Load and validate analysis configuration from YAML."""

from __future__ import annotations

from pathlib import Path

import yaml

from ..errors import ConfigError
from .schema import AnalysisConfig


def load_config(path: Path | str) -> AnalysisConfig:
    """Read a YAML file and return a validated AnalysisConfig.

    An empty file yields the defaults. Unreadable or malformed files raise
    :class:`ConfigError` naming the file, as does a top level that is not a
    mapping.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config file {path} must hold a mapping at the top level, "
            f"got {type(raw).__name__}"
        )
    return AnalysisConfig.model_validate(raw)
