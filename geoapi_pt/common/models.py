"""Data models shared by the assembly pipeline and the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Tuple

Coordinate = Tuple[float, float]
Ring = Tuple[Coordinate, ...]


@dataclass(frozen=True)
class LatLon:
    lat: float
    lon: float

    def to_dict(self, precision: int | None = None) -> dict[str, float]:
        return {"lat": _round(self.lat, precision), "lon": _round(self.lon, precision)}


@dataclass(frozen=True)
class AddressPoint:
    lat: float
    lon: float
    street: str
    house_number: str | None
    cp4: str
    cp3: str

    @property
    def code(self) -> str:
        return f"{self.cp4}-{self.cp3}"

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)

    def sort_key(self) -> tuple:
        return (self.lat, self.lon, self.street, self.house_number or "")

    def to_dict(self, precision: int | None = None) -> dict[str, Any]:
        return {
            "lat": _round(self.lat, precision),
            "lon": _round(self.lon, precision),
            "street": self.street,
            "houseNumber": self.house_number,
            "cp4": self.cp4,
            "cp3": self.cp3,
        }


@dataclass(frozen=True)
class PostalCodeRecord:
    code: str
    registry_fields: dict[str, Any]
    points: tuple[AddressPoint, ...]
    center: LatLon
    center_of_mass: LatLon
    boundary: Ring | None

    @property
    def cp4(self) -> str:
        return self.code[:4]

    @property
    def cp3(self) -> str | None:
        return self.code[5:]

    def to_dict(self, precision: int | None = None) -> dict[str, Any]:
        return {
            "code": self.code,
            "registryFields": self.registry_fields,
            "points": [point.to_dict(precision) for point in self.points],
            "center": self.center.to_dict(precision),
            "centerOfMass": self.center_of_mass.to_dict(precision),
            "boundary": _ring_to_list(self.boundary, precision),
        }


@dataclass(frozen=True)
class PostalCodePrefixRecord:
    code: str
    registry_fields: dict[str, Any]
    points: tuple[AddressPoint, ...]
    center: LatLon
    center_of_mass: LatLon
    boundary: Ring | None
    cp3: tuple[str, ...]

    @property
    def cp4(self) -> str:
        return self.code

    def to_dict(self, precision: int | None = None) -> dict[str, Any]:
        return {
            "code": self.code,
            "registryFields": self.registry_fields,
            "points": [point.to_dict(precision) for point in self.points],
            "center": self.center.to_dict(precision),
            "centerOfMass": self.center_of_mass.to_dict(precision),
            "boundary": _ring_to_list(self.boundary, precision),
            "cp3": list(self.cp3),
        }


@dataclass(frozen=True)
class PolygonPart:
    outer: Ring
    holes: tuple[Ring, ...] = ()


RegionBoundary = Tuple[PolygonPart, ...]


@dataclass(frozen=True)
class BBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @property
    def extent(self) -> float:
        return max(self.max_lat - self.min_lat, self.max_lon - self.min_lon)

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


@dataclass(frozen=True)
class AdministrativeRegion:
    level: str
    code: str
    name: str
    registry_fields: dict[str, Any] = field(default_factory=dict)
    parents: dict[str, str] = field(default_factory=dict)
    boundary: RegionBoundary = ()

    def to_dict(self, include_boundary: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "level": self.level,
            "code": self.code,
            "name": self.name,
            "registryFields": self.registry_fields,
            "parents": self.parents,
        }
        if include_boundary:
            payload["boundary"] = [
                [[list(vertex) for vertex in ring] for ring in (part.outer, *part.holes)]
                for part in self.boundary
            ]
        return payload


@dataclass(frozen=True)
class RegionHierarchy:
    freguesia: AdministrativeRegion
    concelho: AdministrativeRegion
    distrito: AdministrativeRegion

    def to_dict(self) -> dict[str, Any]:
        return {
            "freguesia": self.freguesia.to_dict(),
            "concelho": self.concelho.to_dict(),
            "distrito": self.distrito.to_dict(),
        }


def _round(value: float, precision: int | None) -> float:
    if precision is None:
        return value
    return round(value, precision)


def _ring_to_list(ring: Ring | None, precision: int | None) -> list[list[float]] | None:
    if ring is None:
        return None
    return [[_round(lat, precision), _round(lon, precision)] for lat, lon in ring]
