"""Job config loader — YAML serialization for JobConfig and column mappings.

Provides round-trip save/load so a confirmed column mapping and the rest of
a generation job can be reviewed, version-controlled, and re-run as
human-readable YAML.  Mapping files may also be JSON (what the mapping
suggestion step exported historically).
"""

import json
from pathlib import Path

import yaml

from bannerbuildr.errors import ConfigError

from .models import ColumnMapping, JobConfig


def save_config(config: JobConfig, path: str | Path) -> None:
    """Serialize a JobConfig to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False,
                  sort_keys=False, allow_unicode=True, width=120)


def load_config(path: str | Path) -> JobConfig:
    """Deserialize a JobConfig from a YAML file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    return JobConfig.from_dict(data)


def save_mapping(mapping: ColumnMapping, path: str | Path) -> None:
    """Write a column mapping as YAML (or JSON for a ``.json`` path)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            json.dump(dict(mapping), f, indent=2)
        else:
            yaml.dump(dict(mapping), f, default_flow_style=False,
                      sort_keys=False, allow_unicode=True, width=120)


def load_mapping(path: str | Path) -> ColumnMapping:
    """Read a column mapping; an empty file maps nothing."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid mapping file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Mapping file {path} must contain a mapping")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}
