"""Base protocol for inventory ingesters."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

from areal_typology.config.schema import SourceDef
from areal_typology.errors import DataIntegrityError
from areal_typology.ingest.models import InventoryRow


@runtime_checkable
class InventoryIngester(Protocol):
    """Protocol that all ingesters must implement."""

    def __init__(self, source_def: SourceDef) -> None: ...

    def ingest(self) -> Iterator[InventoryRow]:
        """Yield InventoryRow objects from the source."""
        ...


def parse_coordinate(value: Any, *, field: str, row_ref: str, strict: bool) -> float | None:
    """Parse a decimal-degree value; empty cells become None.

    Unparsable or out-of-range values raise DataIntegrityError when *strict*,
    otherwise they are treated as missing.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() in ("NA", "NULL", "NAN"):
        return None
    try:
        number = float(text)
    except ValueError:
        if strict:
            raise DataIntegrityError(f"{row_ref}: unparsable {field} {text!r}")
        return None
    limit = 90.0 if field == "latitude" else 180.0
    if not -limit <= number <= limit:
        if strict:
            raise DataIntegrityError(f"{row_ref}: {field} {number} out of range")
        return None
    return number
