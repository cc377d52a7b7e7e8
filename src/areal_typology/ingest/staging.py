"""Read and write the staged working sample as JSONL.

``manifest.json`` records the configuration the sample was built from, so a
later run can tell whether the staged files are still current.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import orjson

from areal_typology.ingest.models import LanguageRecord
from areal_typology.ingest.sampling import Sample

logger = logging.getLogger(__name__)

LANGUAGES_FILE = "languages.jsonl"
FEATURES_FILE = "features.jsonl"
MANIFEST_FILE = "manifest.json"
DISTANCES_FILE = "distances.npz"


def write_sample(
    sample: Sample, staging_dir: Path, built_from: dict[str, Any] | None = None
) -> None:
    """Stage *sample*; *built_from* is stored in the manifest for staleness checks.

    Any cached distance matrix belongs to the previous sample and is removed.
    """
    staging_dir.mkdir(parents=True, exist_ok=True)
    with (staging_dir / LANGUAGES_FILE).open("wb") as fh:
        for record in sample.records:
            fh.write(orjson.dumps(record.to_dict()) + b"\n")
    with (staging_dir / FEATURES_FILE).open("wb") as fh:
        for record in sample.records:
            row = {
                "sample_id": record.sample_id,
                "features": sorted(sample.features[record.sample_id]),
            }
            fh.write(orjson.dumps(row) + b"\n")
    (staging_dir / MANIFEST_FILE).write_bytes(
        orjson.dumps({"built_from": built_from}, option=orjson.OPT_SORT_KEYS)
    )
    distances = staging_dir / DISTANCES_FILE
    if distances.exists():
        distances.unlink()
    logger.info("Staged %d languages to %s", len(sample), staging_dir)


def has_sample(staging_dir: Path) -> bool:
    return (staging_dir / LANGUAGES_FILE).exists() and (staging_dir / FEATURES_FILE).exists()


def staged_from(staging_dir: Path) -> dict[str, Any] | None:
    """Configuration recorded when the sample was staged; None if unknown."""
    path = staging_dir / MANIFEST_FILE
    if not path.exists():
        return None
    return orjson.loads(path.read_bytes()).get("built_from")


def read_sample(staging_dir: Path) -> Sample:
    records: list[LanguageRecord] = []
    with (staging_dir / LANGUAGES_FILE).open("rb") as fh:
        for line in fh:
            records.append(LanguageRecord.from_dict(orjson.loads(line)))
    features: dict[str, frozenset[str]] = {}
    with (staging_dir / FEATURES_FILE).open("rb") as fh:
        for line in fh:
            row = orjson.loads(line)
            features[row["sample_id"]] = frozenset(row["features"])
    logger.info("Loaded %d staged languages from %s", len(records), staging_dir)
    return Sample(records=tuple(records), features=features)
