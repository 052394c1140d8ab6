"""Coordinate parsing, transformation to WGS84 and bbox validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pyproj import CRS, Transformer

from geoapi_pt.common.constants import WGS84_EPSG
from geoapi_pt.common.errors import ConfigError


def safe_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def valid_lat_lon(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def within_bbox(lat: float, lon: float, bbox: dict | None) -> bool:
    if not bbox:
        return True
    return (
        bbox["min_lat"] <= lat <= bbox["max_lat"]
        and bbox["min_lon"] <= lon <= bbox["max_lon"]
    )


@lru_cache(maxsize=8)
def _transformer(source_epsg: int) -> Transformer:
    try:
        return Transformer.from_crs(CRS.from_epsg(source_epsg), CRS.from_epsg(WGS84_EPSG), always_xy=True)
    except Exception as exc:
        raise ConfigError(f"Unsupported source EPSG code: {source_epsg}") from exc


def to_wgs84(x: float, y: float, source_epsg: int) -> tuple[float, float]:
    """Return ``(lat, lon)`` for an ``(x, y)`` pair in ``source_epsg``.

    For EPSG:4326 input ``x`` is the longitude and ``y`` the latitude.
    """
    if source_epsg == WGS84_EPSG:
        return y, x
    lon, lat = _transformer(source_epsg).transform(x, y)
    return lat, lon
