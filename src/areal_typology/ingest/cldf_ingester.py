"""CLDF StructureDataset ingester (e.g. the PHOIBLE CLDF release) using pycldf."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from areal_typology.config.schema import SourceDef
from areal_typology.ingest.base import parse_coordinate
from areal_typology.ingest.models import InventoryRow, Level

logger = logging.getLogger(__name__)

_METADATA_NAMES = ("StructureDataset-metadata.json", "cldf-metadata.json")


class CldfIngester:
    """Reads phoneme values from a CLDF ValueTable joined with its LanguageTable.

    Each ``Contribution_ID`` is treated as one inventory; datasets without
    contributions fall back to one inventory per language.
    """

    def __init__(self, source_def: SourceDef) -> None:
        self.source_def = source_def

    def ingest(self) -> Iterator[InventoryRow]:
        try:
            from pycldf import Dataset
        except ImportError:
            raise ImportError(
                "pycldf is required for CLDF ingestion. "
                "Install with: pip install areal-typology[cldf]"
            )

        path = Path(self.source_def.path)
        metadata_path = next(
            (path / name for name in _METADATA_NAMES if (path / name).exists()), None
        )
        if metadata_path is None:
            raise FileNotFoundError(
                f"No CLDF metadata found in {path}. "
                f"Expected one of {', '.join(_METADATA_NAMES)}"
            )

        ds = Dataset.from_metadata(metadata_path)
        strict = self.source_def.strict

        languages: dict[str, dict] = {}
        if "LanguageTable" in ds:
            for lang in ds["LanguageTable"]:
                languages[str(lang.get("ID", ""))] = lang

        unresolved = 0
        for value in ds["ValueTable"]:
            language_id = str(value.get("Language_ID", ""))
            phoneme = str(value.get("Value") or "").strip()
            if not phoneme:
                continue
            lang = languages.get(language_id)
            if lang is None:
                unresolved += 1
                continue

            row_ref = f"ValueTable:{value.get('ID', '')}"
            family_id = lang.get("Family_Glottocode") or lang.get("Family_ID") or None
            yield InventoryRow(
                sample_id=str(value.get("Contribution_ID") or language_id),
                language_code=str(lang.get("Glottocode") or language_id),
                language_name=str(lang.get("Name") or ""),
                phoneme=phoneme,
                family_id=family_id,
                latitude=parse_coordinate(
                    lang.get("Latitude"), field="latitude", row_ref=row_ref, strict=strict
                ),
                longitude=parse_coordinate(
                    lang.get("Longitude"), field="longitude", row_ref=row_ref, strict=strict
                ),
                level=Level.LANGUAGE,
                macroarea=lang.get("Macroarea") or None,
            )

        if unresolved:
            logger.warning(
                "%d values reference languages missing from the LanguageTable",
                unresolved,
            )
