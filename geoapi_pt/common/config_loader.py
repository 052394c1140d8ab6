"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from geoapi_pt.common.constants import CONFIG_FILENAME
from geoapi_pt.common.errors import ConfigError
from geoapi_pt.common.fs import read_yaml
from geoapi_pt.common.schema import validate_geoapi_config


@dataclass(frozen=True)
class ConfigBundle:
    address_feed: dict
    postal_registry: dict
    artifacts: dict
    aggregation: dict
    boundaries: dict
    validation: dict

    @property
    def bbox(self) -> dict:
        return self.validation["bbox_wgs84"]

    @property
    def precision(self) -> int:
        return int(self.artifacts.get("precision", 7))


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    return _deep_merge(base, overlay)


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    cfg = validate_geoapi_config(cfg, allow_unknown=allow_unknown)
    return ConfigBundle(
        address_feed=cfg["address_feed"],
        postal_registry=cfg["postal_registry"],
        artifacts=cfg["artifacts"],
        aggregation=cfg["aggregation"],
        boundaries=cfg["boundaries"],
        validation=cfg["validation"],
    )


def resolve_data_path(data_dir: Path, value: str | None) -> Path | None:
    if value in (None, ""):
        return None
    path = Path(value)
    if path.is_absolute():
        return path
    return data_dir / path
