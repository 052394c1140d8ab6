"""Postal registry (CTT) loading and per-code field merging."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from geoapi_pt.common.errors import StageError, UnknownCodeError
from geoapi_pt.common.fs import iter_csv_rows
from geoapi_pt.common.postcode import parse_postal_code


@dataclass(frozen=True)
class PostalRegistry:
    rows_by_code: dict[str, tuple[dict, ...]]
    rows_by_prefix: dict[str, tuple[dict, ...]]
    invalid_rows: int = 0
    fields: tuple[str, ...] = field(default_factory=tuple)

    def fields_for(self, code: str) -> dict[str, Any]:
        """Merged registry fields for a CP4-CP3 or CP4 code.

        Raises UnknownCodeError when no registry row carries the code.
        """
        rows = self.rows_by_code.get(code) if len(code) > 4 else self.rows_by_prefix.get(code)
        if not rows:
            raise UnknownCodeError(code)
        return merge_registry_rows(rows, self.fields)


def merge_registry_rows(rows: Iterable[dict], fields: Iterable[str] = ()) -> dict[str, Any]:
    """Collapse many registry rows into one field mapping.

    A field with a single distinct value stays scalar, several distinct values
    become a sorted list, and a field that is always blank maps to None.
    """
    rows = list(rows)
    keys = list(fields)
    if not keys:
        seen: dict[str, None] = {}
        for row in rows:
            for key in row:
                seen.setdefault(key, None)
        keys = list(seen)

    merged: dict[str, Any] = {}
    for key in keys:
        values = sorted({row[key].strip() for row in rows if row.get(key) and row[key].strip()})
        if not values:
            merged[key] = None
        elif len(values) == 1:
            merged[key] = values[0]
        else:
            merged[key] = values
    return merged


def load_postal_registry(path: Path, registry_config: dict) -> PostalRegistry:
    if not path.exists():
        raise StageError(f"Missing postal registry: {path}")

    cp4_field = registry_config["cp4_field"]
    cp3_field = registry_config["cp3_field"]
    kept_fields = tuple(registry_config.get("fields") or ())

    by_code: dict[str, list[dict]] = defaultdict(list)
    by_prefix: dict[str, list[dict]] = defaultdict(list)
    invalid_rows = 0

    rows = iter_csv_rows(
        path,
        delimiter=registry_config.get("delimiter", ";"),
        encoding=registry_config.get("encoding", "utf-8"),
    )
    for row in rows:
        code = parse_postal_code(f"{(row.get(cp4_field) or '').strip()}{(row.get(cp3_field) or '').strip()}")
        if code is None or code.is_prefix:
            invalid_rows += 1
            continue
        payload = {key: value for key, value in row.items() if key not in (cp4_field, cp3_field) and key is not None}
        by_code[str(code)].append(payload)
        by_prefix[code.cp4].append(payload)

    return PostalRegistry(
        rows_by_code={key: tuple(value) for key, value in by_code.items()},
        rows_by_prefix={key: tuple(value) for key, value in by_prefix.items()},
        invalid_rows=invalid_rows,
        fields=kept_fields,
    )
