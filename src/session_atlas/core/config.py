from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from session_atlas.core.errors import MalformedError
from session_atlas.storage.models import AtlasConfig

CONFIG_ENV_VAR = "SESSION_ATLAS_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.session-atlas/config.yaml")


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise MalformedError(f"Cannot read config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedError(f"Config {path} must be a mapping")
    return data


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_config(path: Path | None = None) -> AtlasConfig:
    """Load config.yaml, merging any ``extends`` files underneath it.

    A missing file yields the defaults. Relative ``extends`` entries resolve
    against the directory of the file that names them.
    """
    main_path = Path(path).expanduser() if path else default_config_path()
    data = _load_yaml(main_path)

    extends = data.get("extends") or []
    if isinstance(extends, str):
        extends = [extends]

    merged: dict[str, Any] = {}
    for extend_path in extends:
        extra = Path(extend_path).expanduser()
        if not extra.is_absolute():
            extra = (main_path.parent / extra).resolve()
        merged = _deep_merge(merged, _load_yaml(extra))

    merged = _deep_merge(merged, data)
    return AtlasConfig.model_validate(merged)
