"""YAML config loader — reads sitegen.yml into AppConfig."""

from pathlib import Path

import yaml

from sitegen.schemas.config import AppConfig


def load_config(path: str | Path) -> AppConfig:
    """Load and validate a config file.

    Raises ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # A section header with everything commented out loads as None.
    for key in ("retry", "github"):
        if key in raw and raw[key] is None:
            del raw[key]

    return AppConfig(**raw)
