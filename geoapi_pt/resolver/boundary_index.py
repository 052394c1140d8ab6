"""Uniform grid over region bounding boxes for candidate lookup."""

from __future__ import annotations

import math
from collections import defaultdict
from statistics import median
from typing import Iterator, Sequence

from geoapi_pt.common.errors import MalformedBoundaryError
from geoapi_pt.common.geometry import bbox_of, boundary_bbox
from geoapi_pt.common.models import AdministrativeRegion, BBox

MIN_CELL_SIZE = 1e-6

Cell = tuple[int, int]


class BoundaryIndex:
    """Sparse uniform grid mapping cells to the regions whose part bboxes touch them.

    The cell size is the median bounding-box extent of the indexed regions.
    Cells hold region positions in input order, so candidates come back in
    that order too.
    """

    def __init__(
        self,
        regions: Sequence[AdministrativeRegion],
        part_bboxes: Sequence[tuple[BBox, ...]],
        cell_size: float,
        origin: tuple[float, float],
        cells: dict[Cell, tuple[int, ...]],
    ) -> None:
        self.regions = tuple(regions)
        self.part_bboxes = tuple(part_bboxes)
        self.cell_size = cell_size
        self.origin = origin
        self._cells = cells

    def __len__(self) -> int:
        return len(self.regions)

    @classmethod
    def build(cls, regions: Sequence[AdministrativeRegion]) -> "BoundaryIndex":
        part_bboxes: list[tuple[BBox, ...]] = []
        extents: list[float] = []
        for region in regions:
            if not region.boundary:
                raise MalformedBoundaryError(f"{region.level} {region.code or region.name}: region has no boundary")
            boxes = tuple(bbox_of(part.outer) for part in region.boundary)
            part_bboxes.append(boxes)
            extents.append(boundary_bbox(region.boundary).extent)

        if not regions:
            return cls((), (), 1.0, (0.0, 0.0), {})

        cell_size = max(median(extents), MIN_CELL_SIZE)
        origin = (
            min(box.min_lat for boxes in part_bboxes for box in boxes),
            min(box.min_lon for boxes in part_bboxes for box in boxes),
        )

        cells: dict[Cell, list[int]] = defaultdict(list)
        index = cls(regions, part_bboxes, cell_size, origin, {})
        for position, boxes in enumerate(part_bboxes):
            covered: set[Cell] = set()
            for box in boxes:
                covered.update(index._cells_for_bbox(box))
            for cell in covered:
                cells[cell].append(position)

        index._cells = {cell: tuple(sorted(members)) for cell, members in cells.items()}
        return index

    def cell_of(self, lat: float, lon: float) -> Cell:
        return (
            math.floor((lat - self.origin[0]) / self.cell_size),
            math.floor((lon - self.origin[1]) / self.cell_size),
        )

    def _cells_for_bbox(self, box: BBox) -> Iterator[Cell]:
        row_min, col_min = self.cell_of(box.min_lat, box.min_lon)
        row_max, col_max = self.cell_of(box.max_lat, box.max_lon)
        for row in range(row_min, row_max + 1):
            for col in range(col_min, col_max + 1):
                yield row, col

    def candidate_positions(self, lat: float, lon: float) -> tuple[int, ...]:
        return self._cells.get(self.cell_of(lat, lon), ())

    def candidates(self, lat: float, lon: float) -> tuple[AdministrativeRegion, ...]:
        """Regions sharing the point's cell; a superset of the containing region."""
        return tuple(self.regions[position] for position in self.candidate_positions(lat, lon))

    def stats(self) -> dict:
        occupancy = [len(members) for members in self._cells.values()]
        return {
            "regions": len(self.regions),
            "cells": len(self._cells),
            "cell_size": self.cell_size,
            "max_cell_occupancy": max(occupancy, default=0),
            "mean_cell_occupancy": round(sum(occupancy) / len(occupancy), 3) if occupancy else 0.0,
        }
