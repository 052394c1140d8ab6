"""Sharded on-disk JSON store for postal code artifacts.

Layout under ``root``::

    <cp4>/<cp4>.json   prefix summary (PostalCodePrefixRecord)
    <cp4>/<cp3>.json   one file per full code (PostalCodeRecord)

The shard key is always the 4-digit prefix.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Mapping

from geoapi_pt.common.fs import ensure_dir, read_json, write_json_atomic
from geoapi_pt.common.models import PostalCodePrefixRecord, PostalCodeRecord
from geoapi_pt.common.postcode import PostalCode, parse_postal_code

Record = PostalCodeRecord | PostalCodePrefixRecord


class ArtifactStore:
    def __init__(self, root: Path, precision: int | None = 7) -> None:
        self.root = Path(root)
        self.precision = precision

    def __repr__(self) -> str:
        return f"ArtifactStore(root={str(self.root)!r})"

    def path_for(self, code: PostalCode) -> Path:
        shard = self.root / code.cp4
        if code.is_prefix:
            return shard / f"{code.cp4}.json"
        return shard / f"{code.cp3}.json"

    def put(self, code: str, record: Record | Mapping[str, Any]) -> Path:
        parsed = parse_postal_code(code)
        if parsed is None:
            raise ValueError(f"Invalid postal code: {code!r}")

        payload = record.to_dict(self.precision) if hasattr(record, "to_dict") else dict(record)
        if payload.get("code") != str(parsed):
            raise ValueError(f"Record code {payload.get('code')!r} does not match {str(parsed)!r}")

        path = self.path_for(parsed)
        ensure_dir(path.parent)
        write_json_atomic(path, payload)
        return path

    def get(self, code: str | None) -> dict[str, Any] | None:
        """Return the stored record for a CP4 or CP4-CP3 code, or None."""
        parsed = parse_postal_code(code)
        if parsed is None:
            return None
        path = self.path_for(parsed)
        if not path.is_file():
            return None
        return read_json(path)

    def exists(self, code: str) -> bool:
        parsed = parse_postal_code(code)
        return parsed is not None and self.path_for(parsed).is_file()

    def iter_codes(self) -> Iterator[str]:
        if not self.root.is_dir():
            return
        for shard in sorted(p for p in self.root.iterdir() if p.is_dir() and len(p.name) == 4 and p.name.isdigit()):
            for path in sorted(shard.glob("*.json")):
                stem = path.stem
                if stem == shard.name:
                    yield shard.name
                elif len(stem) == 3 and stem.isdigit():
                    yield f"{shard.name}-{stem}"
