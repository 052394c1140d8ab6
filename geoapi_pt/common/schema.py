"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from geoapi_pt.common.constants import CENTER_OF_MASS_POLICIES
from geoapi_pt.common.errors import ConfigError

TOP_LEVEL_KEYS = {
    "address_feed",
    "postal_registry",
    "artifacts",
    "aggregation",
    "boundaries",
    "validation",
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_non_empty_list(value, ctx: str) -> None:
    if not isinstance(value, list) or not value:
        raise ConfigError(f"{ctx} must be a non-empty list")


def _validate_address_feed(section: dict, allow_unknown: bool) -> None:
    required = {"path", "delimiter", "source_epsg", "fields"}
    _assert_required_keys(section, required, "address_feed")
    _assert_no_unknown_keys(section, required | {"encoding"}, "address_feed", allow_unknown)

    field_keys = {
        "lat_candidates",
        "lon_candidates",
        "street_candidates",
        "house_number_candidates",
        "postcode_candidates",
    }
    _assert_required_keys(section["fields"], field_keys, "address_feed.fields")
    _assert_no_unknown_keys(section["fields"], field_keys, "address_feed.fields", allow_unknown)
    for key in ("lat_candidates", "lon_candidates", "postcode_candidates"):
        _assert_non_empty_list(section["fields"][key], f"address_feed.fields.{key}")


def _validate_postal_registry(section: dict, allow_unknown: bool) -> None:
    required = {"path", "delimiter", "cp4_field", "cp3_field"}
    _assert_required_keys(section, required, "postal_registry")
    _assert_no_unknown_keys(section, required | {"encoding", "fields"}, "postal_registry", allow_unknown)
    fields = section.get("fields")
    if fields is not None and not isinstance(fields, list):
        raise ConfigError("postal_registry.fields must be a list")


def _validate_artifacts(section: dict, allow_unknown: bool) -> None:
    _assert_required_keys(section, {"root"}, "artifacts")
    _assert_no_unknown_keys(section, {"root", "precision"}, "artifacts", allow_unknown)
    precision = section.get("precision")
    if precision is not None and (not isinstance(precision, int) or precision < 0):
        raise ConfigError("artifacts.precision must be a non-negative integer")


def _validate_aggregation(section: dict, allow_unknown: bool) -> None:
    _assert_required_keys(section, {"center_of_mass_policy", "workers"}, "aggregation")
    _assert_no_unknown_keys(section, {"center_of_mass_policy", "workers"}, "aggregation", allow_unknown)
    if section["center_of_mass_policy"] not in CENTER_OF_MASS_POLICIES:
        allowed = ", ".join(CENTER_OF_MASS_POLICIES)
        raise ConfigError(f"aggregation.center_of_mass_policy must be one of: {allowed}")
    if not isinstance(section["workers"], int) or section["workers"] < 1:
        raise ConfigError("aggregation.workers must be a positive integer")


def _validate_boundary_level(section: dict | None, level: str, required_properties: set[str], allow_unknown: bool) -> None:
    ctx = f"boundaries.{level}"
    _assert_required_keys(section, {"path", "properties"}, ctx)
    _assert_no_unknown_keys(section, {"path", "properties"}, ctx, allow_unknown)
    _assert_required_keys(section["properties"], required_properties, f"{ctx}.properties")


def _validate_boundaries(section: dict, allow_unknown: bool) -> None:
    required = {"source_epsg", "freguesias"}
    _assert_required_keys(section, required, "boundaries")
    _assert_no_unknown_keys(section, required | {"concelhos", "distritos"}, "boundaries", allow_unknown)
    _validate_boundary_level(
        section["freguesias"],
        "freguesias",
        {"code", "name", "concelho", "distrito"},
        allow_unknown,
    )
    if section["freguesias"]["path"] in (None, ""):
        raise ConfigError("boundaries.freguesias.path is required")
    if section.get("concelhos") is not None:
        _validate_boundary_level(section["concelhos"], "concelhos", {"code", "name", "distrito"}, allow_unknown)
    if section.get("distritos") is not None:
        _validate_boundary_level(section["distritos"], "distritos", {"code", "name"}, allow_unknown)


def _validate_validation(section: dict, allow_unknown: bool) -> None:
    _assert_required_keys(section, {"bbox_wgs84"}, "validation")
    _assert_no_unknown_keys(section, {"bbox_wgs84"}, "validation", allow_unknown)
    _assert_required_keys(
        section["bbox_wgs84"],
        {"min_lat", "max_lat", "min_lon", "max_lon"},
        "validation.bbox_wgs84",
    )


def validate_geoapi_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "geoapi config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "geoapi config", allow_unknown)

    _validate_address_feed(cfg["address_feed"], allow_unknown)
    _validate_postal_registry(cfg["postal_registry"], allow_unknown)
    _validate_artifacts(cfg["artifacts"], allow_unknown)
    _validate_aggregation(cfg["aggregation"], allow_unknown)
    _validate_boundaries(cfg["boundaries"], allow_unknown)
    _validate_validation(cfg["validation"], allow_unknown)

    return cfg
