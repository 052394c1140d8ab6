"""Portuguese postal code (CP4 / CP4-CP3) normalisation and validation."""

from __future__ import annotations

import re
from typing import NamedTuple

_EMBEDDED_POSTAL_CODE_RE = re.compile(r"\b(\d{4})\s*-\s*(\d{3})\b")
_NOISE_RE = re.compile(r"[\s\-\u2010-\u2015]+")


class PostalCode(NamedTuple):
    cp4: str
    cp3: str | None

    @property
    def is_prefix(self) -> bool:
        return self.cp3 is None

    def __str__(self) -> str:
        if self.cp3 is None:
            return self.cp4
        return f"{self.cp4}-{self.cp3}"


def parse_postal_code(raw: str | None) -> PostalCode | None:
    """Parse ``NNNN``, ``NNNNNNN`` or ``NNNN-NNN`` into its CP4/CP3 parts.

    Returns None when the value is empty or is not 4 or 7 digits once the
    hyphen and whitespace are stripped.
    """
    if raw is None:
        return None

    cleaned = raw.strip()
    if not cleaned:
        return None

    cleaned = _NOISE_RE.sub("", cleaned)
    if not cleaned.isdigit() or not cleaned.isascii():
        return None
    if len(cleaned) == 4:
        return PostalCode(cleaned, None)
    if len(cleaned) == 7:
        return PostalCode(cleaned[:4], cleaned[4:])
    return None


def find_postal_code(raw: str | None) -> PostalCode | None:
    """Lenient variant for feed columns that may carry text around the code."""
    if raw is None:
        return None
    cleaned = raw.strip()
    # Some feeds carry the locality after the code, e.g. "1950-449 LISBOA".
    if len(cleaned) > 8:
        embedded = _EMBEDDED_POSTAL_CODE_RE.search(cleaned)
        if embedded:
            return PostalCode(embedded.group(1), embedded.group(2))
        return None
    return parse_postal_code(cleaned)


def normalise_full_postal_code(raw: str | None) -> PostalCode | None:
    """Like ``find_postal_code`` but only accepts complete CP4-CP3 codes."""
    parsed = find_postal_code(raw)
    if parsed is None or parsed.is_prefix:
        return None
    return parsed
