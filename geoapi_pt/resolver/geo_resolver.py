"""Exact point-in-region resolution over a BoundaryIndex."""

from __future__ import annotations

import math

from geoapi_pt.common.geometry import part_contains
from geoapi_pt.common.models import AdministrativeRegion, RegionHierarchy
from geoapi_pt.resolver.boundaries import RegionTables
from geoapi_pt.resolver.boundary_index import BoundaryIndex


class GeoResolver:
    """Point-in-region queries against immutable, prebuilt state.

    When a point lies inside more than one region (overlapping data or a
    point exactly on a shared border) the region that comes first in the
    boundary source order wins.
    """

    def __init__(self, index: BoundaryIndex, tables: RegionTables | None = None) -> None:
        self.index = index
        self.tables = tables or RegionTables(freguesias=index.regions)

    def resolve(self, lat: float, lon: float) -> AdministrativeRegion | None:
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValueError(f"Coordinates must be finite numbers, got ({lat}, {lon})")

        for position in self.index.candidate_positions(lat, lon):
            region = self.index.regions[position]
            for part, box in zip(region.boundary, self.index.part_bboxes[position]):
                if box.contains(lat, lon) and part_contains(part, lat, lon):
                    return region
        return None

    def resolve_hierarchy(self, lat: float, lon: float) -> RegionHierarchy | None:
        freguesia = self.resolve(lat, lon)
        if freguesia is None:
            return None
        concelho = self.tables.parent(freguesia, "concelho")
        distrito = self.tables.parent(freguesia, "distrito")
        return RegionHierarchy(freguesia=freguesia, concelho=concelho, distrito=distrito)
