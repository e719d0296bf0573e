"""
Farm configuration loading.

Two sources, applied in order:
1. a YAML file (`load_farm_config`), parsed with `yaml.safe_load`,
2. `OBSFARM_*` environment variables (`farm_config_from_env`), which override
   individual integer parameters of an already-built config.

Malformed input raises `TypeError`/`ValueError` at load time.
"""

from __future__ import annotations

import os
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..core.farm.types import FarmConfig

_STR_FIELDS = ("farm_id", "base_asset_id", "reward_asset_id")
_INT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(FarmConfig) if f.name not in _STR_FIELDS)

ENV_PREFIX = "OBSFARM_"


def _require_mapping(value: Any, *, name: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{name} must be a mapping")
    return value


def farm_config_from_mapping(raw: Mapping[str, Any]) -> FarmConfig:
    unknown = sorted(set(raw) - set(_STR_FIELDS) - set(_INT_FIELDS))
    if unknown:
        raise ValueError(f"unknown farm config keys: {unknown}")
    for name in _STR_FIELDS:
        if name not in raw:
            raise ValueError(f"missing farm config key: {name}")
    for name in _INT_FIELDS:
        if name in raw:
            v = raw[name]
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int, got {type(v).__name__}")
    return FarmConfig(**dict(raw))


def load_farm_config(path: Union[str, Path]) -> FarmConfig:
    """Read a farm config from YAML. The file may nest it under a `farm:` key."""
    text = Path(path).read_text(encoding="utf-8")
    root = _require_mapping(yaml.safe_load(text), name="config")
    if "farm" in root:
        root = _require_mapping(root["farm"], name="farm")
    return farm_config_from_mapping(root)


def _env_int(name: str, *, environ: Mapping[str, str]) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def farm_config_from_env(config: FarmConfig, environ: Optional[Mapping[str, str]] = None) -> FarmConfig:
    """Overlay `OBSFARM_<FIELD>` integer overrides (e.g. `OBSFARM_CLIFF_TIME`)."""
    environ = os.environ if environ is None else environ
    overrides: Dict[str, int] = {}
    for name in _INT_FIELDS:
        v = _env_int(ENV_PREFIX + name.upper(), environ=environ)
        if v is not None:
            overrides[name] = v
    if not overrides:
        return config
    return replace(config, **overrides)
