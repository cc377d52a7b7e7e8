"""CSV/TSV inventory ingester with configurable column mapping."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path

from areal_typology.config.schema import SourceDef, SourceFormat
from areal_typology.errors import DataIntegrityError
from areal_typology.ingest.base import parse_coordinate
from areal_typology.ingest.models import InventoryRow, Level

logger = logging.getLogger(__name__)


class CsvIngester:
    """Ingests long-format inventory tables: one row per (inventory, phoneme)."""

    def __init__(self, source_def: SourceDef) -> None:
        self.source_def = source_def

    def ingest(self) -> Iterator[InventoryRow]:
        if self.source_def.format == SourceFormat.TSV:
            delimiter = self.source_def.delimiter or "\t"
        else:
            delimiter = self.source_def.delimiter or ","

        path = Path(self.source_def.path)
        mapping = self.source_def.column_mapping
        strict = self.source_def.strict
        skipped = 0

        with path.open("r", encoding=self.source_def.encoding, newline="") as fh:
            reader = csv.DictReader(fh, delimiter=delimiter)
            required = [mapping.sample_id, mapping.language_code, mapping.phoneme]
            missing = [c for c in required if c not in (reader.fieldnames or [])]
            if missing:
                raise DataIntegrityError(
                    f"{path.name}: missing required columns {missing}"
                )

            for row_idx, row in enumerate(reader, start=2):
                row_ref = f"{path.name}:{row_idx}"
                sample_id = (row.get(mapping.sample_id) or "").strip()
                code = (row.get(mapping.language_code) or "").strip()
                phoneme = (row.get(mapping.phoneme) or "").strip()
                if not sample_id or not code or not phoneme:
                    if strict:
                        raise DataIntegrityError(
                            f"{row_ref}: empty sample id, language code or phoneme"
                        )
                    skipped += 1
                    continue

                family_id = None
                if mapping.family_id:
                    family_id = (row.get(mapping.family_id) or "").strip() or None

                level = Level.LANGUAGE
                if mapping.level:
                    level = (row.get(mapping.level) or "").strip().lower() or Level.LANGUAGE

                macroarea = None
                if mapping.macroarea:
                    macroarea = (row.get(mapping.macroarea) or "").strip() or None

                yield InventoryRow(
                    sample_id=sample_id,
                    language_code=code,
                    language_name=(row.get(mapping.language_name) or "").strip(),
                    phoneme=phoneme,
                    family_id=family_id,
                    latitude=parse_coordinate(
                        row.get(mapping.latitude) if mapping.latitude else None,
                        field="latitude", row_ref=row_ref, strict=strict,
                    ),
                    longitude=parse_coordinate(
                        row.get(mapping.longitude) if mapping.longitude else None,
                        field="longitude", row_ref=row_ref, strict=strict,
                    ),
                    level=level,
                    macroarea=macroarea,
                )

        if skipped:
            logger.warning("Skipped %d incomplete rows in %s", skipped, path.name)
