"""Read the raw address export into AddressPoint records."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from geoapi_pt.common.errors import StageError
from geoapi_pt.common.fs import iter_csv_rows
from geoapi_pt.common.models import AddressPoint
from geoapi_pt.common.postcode import normalise_full_postal_code
from geoapi_pt.pipeline.coordinates import safe_float, to_wgs84, valid_lat_lon, within_bbox

MAX_INVALID_SAMPLES = 50


@dataclass(frozen=True)
class FeedLoad:
    points: tuple[AddressPoint, ...]
    rows_in: int
    skipped: dict[str, int] = field(default_factory=dict)
    invalid_samples: tuple[dict, ...] = ()


def _lookup_first(row: dict, candidates: list[str]) -> str | None:
    for key in candidates:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = " ".join(value.split())
    return cleaned or None


def parse_address_row(row: dict, feed_config: dict, bbox: dict | None = None) -> AddressPoint | str:
    """Parse one feed row; returns the point or the reason it was skipped."""
    fields = feed_config["fields"]

    code = normalise_full_postal_code(_lookup_first(row, fields["postcode_candidates"]))
    if code is None:
        return "invalid_postcode"

    x = safe_float(_lookup_first(row, fields["lon_candidates"]))
    y = safe_float(_lookup_first(row, fields["lat_candidates"]))
    if x is None or y is None:
        return "invalid_coordinates"

    lat, lon = to_wgs84(x, y, int(feed_config.get("source_epsg", 4326)))
    if not valid_lat_lon(lat, lon):
        return "invalid_coordinates"
    if not within_bbox(lat, lon, bbox):
        return "outside_bbox"

    return AddressPoint(
        lat=lat,
        lon=lon,
        street=_clean_text(_lookup_first(row, fields.get("street_candidates") or [])) or "",
        house_number=_clean_text(_lookup_first(row, fields.get("house_number_candidates") or [])),
        cp4=code.cp4,
        cp3=code.cp3,
    )


def load_address_feed(path: Path, feed_config: dict, bbox: dict | None = None) -> FeedLoad:
    if not path.exists():
        raise StageError(f"Missing address feed: {path}")

    points: list[AddressPoint] = []
    skipped: dict[str, int] = defaultdict(int)
    invalid_samples: list[dict] = []
    rows_in = 0

    rows = iter_csv_rows(
        path,
        delimiter=feed_config.get("delimiter", ","),
        encoding=feed_config.get("encoding", "utf-8"),
    )
    for row in rows:
        rows_in += 1
        parsed = parse_address_row(row, feed_config, bbox)
        if isinstance(parsed, str):
            skipped[parsed] += 1
            if len(invalid_samples) < MAX_INVALID_SAMPLES:
                invalid_samples.append({"line": rows_in + 1, "reason": parsed})
            continue
        points.append(parsed)

    return FeedLoad(
        points=tuple(points),
        rows_in=rows_in,
        skipped=dict(sorted(skipped.items())),
        invalid_samples=tuple(invalid_samples),
    )
