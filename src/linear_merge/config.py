from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from yaml import YAMLError

from .errors import UsageError
from .models import AppConfig


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_dotted(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cursor = data
    for part in parts[:-1]:
        if part not in cursor or not isinstance(cursor[part], dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[parts[-1]] = value


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        content = yaml.safe_load(path.read_text())
    except YAMLError as exc:
        raise UsageError(f"invalid YAML in {path}") from exc
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise UsageError(f"{path} must contain a mapping")
    return content


def _default_config_path() -> Path:
    project_root = Path(__file__).resolve().parents[2]
    candidate = project_root / "config" / "defaults.yaml"
    if candidate.exists():
        return candidate
    return Path("config/defaults.yaml")


def user_config_path() -> Path:
    return Path.home() / ".linear-merge" / "config.yaml"


def load_user_defaults() -> dict[str, Any]:
    return _load_yaml(user_config_path())


def load_config(
    config_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    base = _load_yaml(_default_config_path())
    base = _deep_merge(base, load_user_defaults())
    if config_path:
        if not config_path.exists():
            raise UsageError(f"config file {config_path} does not exist")
        base = _deep_merge(base, _load_yaml(config_path))

    overrides = cli_overrides or {}
    if overrides:
        nested: dict[str, Any] = {}
        for key, value in overrides.items():
            _set_dotted(nested, key, value)
        base = _deep_merge(base, nested)

    try:
        return AppConfig.model_validate(base)
    except ValidationError as exc:
        raise UsageError(f"invalid configuration: {exc}") from exc
