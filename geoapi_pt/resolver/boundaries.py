"""Load administrative boundaries (freguesia / concelho / distrito) from GeoJSON."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from geoapi_pt.common.config_loader import resolve_data_path
from geoapi_pt.common.errors import MalformedBoundaryError, StageError
from geoapi_pt.common.fs import read_json
from geoapi_pt.common.geometry import validate_ring
from geoapi_pt.common.logging import log_event
from geoapi_pt.common.models import AdministrativeRegion, PolygonPart, RegionBoundary, Ring
from geoapi_pt.pipeline.coordinates import to_wgs84

_module_logger = logging.getLogger(__name__)

PARENT_LEVELS = {
    "freguesia": ("concelho", "distrito"),
    "concelho": ("distrito",),
    "distrito": (),
}


def region_key(name: str) -> str:
    return " ".join(name.split()).casefold()


def parent_code(code: str, level: str) -> str:
    """Parent code implied by a CAOP code, or "" when it cannot be derived."""
    # CAOP codes nest: DI (2 digits) -> DICO (4) -> DICOFRE (6).
    width = 4 if level == "concelho" else 2
    if code.isdigit() and len(code) > width:
        return code[:width]
    return ""


@dataclass(frozen=True)
class RegionTables:
    """Loaded regions, in source order, plus code-keyed parent tables.

    Names alone are ambiguous (Lagoa and Calheta each name two concelhos),
    so parents are matched on the code prefix first and by name only within
    the recorded distrito.
    """

    freguesias: tuple[AdministrativeRegion, ...]
    concelhos: dict[str, AdministrativeRegion] = field(default_factory=dict)
    distritos: dict[str, AdministrativeRegion] = field(default_factory=dict)

    def parent(self, region: AdministrativeRegion, level: str) -> AdministrativeRegion:
        """Recorded parent of ``region`` at ``level``.

        When no boundary table for that level was loaded the parent is
        rebuilt from the child's recorded fields, without a boundary.
        """
        name = region.parents.get(level, "")
        table = self.concelhos if level == "concelho" else self.distritos
        code = parent_code(region.code, level)
        found = table.get(code) if code else None
        if found is None:
            found = self._parent_by_name(region, level, table)
        if found is not None:
            return found

        parents = {}
        if level == "concelho" and "distrito" in region.parents:
            parents["distrito"] = region.parents["distrito"]
        return AdministrativeRegion(level=level, code=code, name=name, parents=parents)

    @staticmethod
    def _parent_by_name(
        region: AdministrativeRegion, level: str, table: dict[str, AdministrativeRegion]
    ) -> AdministrativeRegion | None:
        key = region_key(region.parents.get(level, ""))
        matches = [candidate for candidate in table.values() if region_key(candidate.name) == key]
        if level == "concelho" and len(matches) > 1:
            distrito = region_key(region.parents.get("distrito", ""))
            matches = [m for m in matches if region_key(m.parents.get("distrito", "")) == distrito]
        return matches[0] if len(matches) == 1 else None


def _ring_from_positions(positions: Any, source_epsg: int, context: str) -> Ring:
    if not isinstance(positions, list):
        raise MalformedBoundaryError(f"{context}: ring is not a coordinate list")
    raw: list[tuple[float, float]] = []
    for position in positions:
        if not isinstance(position, (list, tuple)) or len(position) < 2:
            raise MalformedBoundaryError(f"{context}: invalid position {position!r}")
        raw.append((float(position[0]), float(position[1])))
    validate_ring(raw, context=context)
    return tuple(to_wgs84(x, y, source_epsg) for x, y in raw)


def _part_from_rings(rings: Any, source_epsg: int, context: str) -> PolygonPart:
    if not isinstance(rings, list) or not rings:
        raise MalformedBoundaryError(f"{context}: polygon without rings")
    outer = _ring_from_positions(rings[0], source_epsg, f"{context} outer ring")
    holes = tuple(
        _ring_from_positions(ring, source_epsg, f"{context} hole {idx}")
        for idx, ring in enumerate(rings[1:], start=1)
    )
    return PolygonPart(outer=outer, holes=holes)


def parse_geometry(geometry: dict | None, source_epsg: int, context: str) -> RegionBoundary:
    if not geometry:
        raise MalformedBoundaryError(f"{context}: missing geometry")
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geometry_type == "Polygon":
        return (_part_from_rings(coordinates, source_epsg, context),)
    if geometry_type == "MultiPolygon":
        if not isinstance(coordinates, list) or not coordinates:
            raise MalformedBoundaryError(f"{context}: empty MultiPolygon")
        return tuple(
            _part_from_rings(rings, source_epsg, f"{context} part {idx}")
            for idx, rings in enumerate(coordinates)
        )
    raise MalformedBoundaryError(f"{context}: unsupported geometry type {geometry_type!r}")


def load_regions(path: Path, level: str, properties: dict, source_epsg: int = 4326) -> tuple[AdministrativeRegion, ...]:
    """Read one GeoJSON FeatureCollection into regions, preserving feature order."""
    if not path.exists():
        raise StageError(f"Missing boundary file: {path}")

    payload = read_json(path)
    if payload.get("type") != "FeatureCollection":
        raise MalformedBoundaryError(f"{path}: expected a GeoJSON FeatureCollection")

    code_key = properties["code"]
    name_key = properties["name"]
    parent_keys = {parent: properties[parent] for parent in PARENT_LEVELS[level]}
    mapped_keys = {code_key, name_key, *parent_keys.values()}

    regions: list[AdministrativeRegion] = []
    for idx, feature in enumerate(payload.get("features", [])):
        props = feature.get("properties") or {}
        code = str(props.get(code_key) or "").strip()
        name = str(props.get(name_key) or "").strip()
        context = f"{path.name} feature {idx} ({level} {code or name or '?'})"
        regions.append(
            AdministrativeRegion(
                level=level,
                code=code,
                name=name,
                registry_fields={key: value for key, value in props.items() if key not in mapped_keys},
                parents={parent: str(props.get(key) or "").strip() for parent, key in parent_keys.items()},
                boundary=parse_geometry(feature.get("geometry"), source_epsg, context),
            )
        )
    return tuple(regions)


def load_region_tables(
    boundaries_config: dict,
    data_dir: Path,
    *,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> RegionTables:
    """Load every configured level. Any malformed ring aborts the whole load."""
    logger = logger or _module_logger
    source_epsg = int(boundaries_config.get("source_epsg", 4326))

    freguesia_cfg = boundaries_config["freguesias"]
    freguesias = load_regions(
        resolve_data_path(data_dir, freguesia_cfg["path"]),
        "freguesia",
        freguesia_cfg["properties"],
        source_epsg,
    )

    tables: dict[str, dict[str, AdministrativeRegion]] = {"concelho": {}, "distrito": {}}
    for level, section in (("concelho", "concelhos"), ("distrito", "distritos")):
        level_cfg = boundaries_config.get(section)
        path = resolve_data_path(data_dir, level_cfg["path"]) if level_cfg else None
        if path is None or not path.exists():
            log_event(
                logger,
                f"no {level} boundaries loaded; parents derived from freguesia fields",
                level=logging.WARNING,
                run_id=run_id,
                stage="check-boundaries",
                source=str(path) if path else None,
                event="LEVEL_MISSING",
                status="skipped",
            )
            continue
        for region in load_regions(path, level, level_cfg["properties"], source_epsg):
            tables[level].setdefault(region.code or region_key(region.name), region)

    return RegionTables(freguesias=freguesias, concelhos=tables["concelho"], distritos=tables["distrito"])
