"""Serving-side context and registry lookups.

``GeoContext`` is built once per process and then only read; request
handlers share it by reference.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from geoapi_pt.common.config_loader import ConfigBundle, resolve_data_path
from geoapi_pt.common.models import AdministrativeRegion
from geoapi_pt.pipeline.artifact_store import ArtifactStore
from geoapi_pt.resolver.boundaries import RegionTables, load_region_tables
from geoapi_pt.resolver.boundary_index import BoundaryIndex
from geoapi_pt.resolver.geo_resolver import GeoResolver

UNIQUE_KEYS = ("code", "name")


def _normalise_text(value: Any) -> str:
    text = unicodedata.normalize("NFKD", str(value))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return " ".join(text.split()).casefold()


def region_record(region: AdministrativeRegion) -> dict[str, Any]:
    record: dict[str, Any] = dict(region.registry_fields)
    record.update(region.parents)
    record.update({"level": region.level, "code": region.code, "name": region.name})
    return record


def find_records(records: Iterable[Mapping[str, Any]], field: str, value: Any, *, exact: bool = False) -> list[dict]:
    """Records whose ``field`` equals (exact) or contains ``value``.

    Matching ignores case, accents and repeated whitespace in both modes.
    """
    needle = _normalise_text(value)
    matches = []
    for record in records:
        candidate = record.get(field)
        if candidate is None:
            continue
        haystack = _normalise_text(candidate)
        if (haystack == needle) if exact else (needle in haystack):
            matches.append(dict(record))
    return matches


def lookup_records(
    records: Iterable[Mapping[str, Any]],
    filters: Mapping[str, Any],
    *,
    exact: bool = False,
    unique_keys: Iterable[str] = UNIQUE_KEYS,
) -> dict | list[dict]:
    """Apply every filter; a lone match on a unique key comes back unwrapped."""
    matches = [dict(record) for record in records]
    for field, value in filters.items():
        if value is None:
            continue
        matches = find_records(matches, field, value, exact=exact)
    if len(matches) == 1 and any(filters.get(key) is not None for key in unique_keys):
        return matches[0]
    return matches


@dataclass(frozen=True)
class GeoContext:
    tables: RegionTables
    index: BoundaryIndex
    resolver: GeoResolver
    store: ArtifactStore

    @classmethod
    def build(
        cls,
        config: ConfigBundle,
        data_dir: Path,
        *,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ) -> "GeoContext":
        tables = load_region_tables(config.boundaries, data_dir, logger=logger, run_id=run_id)
        return cls.from_tables(tables, ArtifactStore(resolve_data_path(data_dir, config.artifacts["root"]), config.precision))

    @classmethod
    def from_tables(cls, tables: RegionTables, store: ArtifactStore) -> "GeoContext":
        index = BoundaryIndex.build(tables.freguesias)
        return cls(tables=tables, index=index, resolver=GeoResolver(index, tables), store=store)

    def gps(self, lat: float, lon: float) -> dict | None:
        hierarchy = self.resolver.resolve_hierarchy(lat, lon)
        if hierarchy is None:
            return None
        return hierarchy.to_dict()

    def postal_code(self, code: str) -> dict | None:
        return self.store.get(code)

    def _records(self, level: str) -> list[dict]:
        if level == "freguesia":
            regions: Iterable[AdministrativeRegion] = self.tables.freguesias
        else:
            table = self.tables.concelhos if level == "concelho" else self.tables.distritos
            if table:
                regions = table.values()
            else:
                derived: dict[tuple[str, str], AdministrativeRegion] = {}
                for freguesia in self.tables.freguesias:
                    parent = self.tables.parent(freguesia, level)
                    derived.setdefault((parent.code, _normalise_text(parent.name)), parent)
                regions = derived.values()
        return sorted((region_record(region) for region in regions), key=lambda r: (_normalise_text(r["name"]), r["code"]))

    def freguesias(self, *, exact: bool = False, **filters: Any) -> dict | list[dict]:
        return lookup_records(self._records("freguesia"), filters, exact=exact)

    def municipios(self, *, exact: bool = False, **filters: Any) -> dict | list[dict]:
        return lookup_records(self._records("concelho"), filters, exact=exact)

    def distritos(self, *, exact: bool = False, **filters: Any) -> dict | list[dict]:
        return lookup_records(self._records("distrito"), filters, exact=exact)
