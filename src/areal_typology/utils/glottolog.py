"""Glottolog lookup tables: family names, macro-areas and coordinates."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Languoid:
    glottocode: str
    name: str
    family_glottocode: str = ""
    level: str = ""
    latitude: float | None = None
    longitude: float | None = None
    macroarea: str = ""


class GlottologTree:
    """In-memory Glottolog lookup built from the release CSV files."""

    def __init__(self) -> None:
        self._by_glottocode: dict[str, Languoid] = {}

    def __len__(self) -> int:
        return len(self._by_glottocode)

    @classmethod
    def from_files(
        cls, languoid_csv: Path | None = None, geo_csv: Path | None = None
    ) -> GlottologTree:
        tree = cls()
        if languoid_csv is not None:
            tree.load_languoids(Path(languoid_csv))
        if geo_csv is not None:
            tree.load_geo(Path(geo_csv))
        return tree

    def load_languoids(self, path: Path) -> None:
        """Load ``languoid.csv`` (id, family_id, name, level, latitude, longitude)."""
        with path.open("r", encoding="utf-8", newline="") as fh:
            for row in csv.DictReader(fh):
                code = row["id"]
                lang = self._by_glottocode.setdefault(code, Languoid(code, ""))
                lang.name = row.get("name", "") or lang.name
                lang.family_glottocode = row.get("family_id", "") or ""
                lang.level = row.get("level", "") or lang.level
                lang.latitude = _safe_float(row.get("latitude"), lang.latitude)
                lang.longitude = _safe_float(row.get("longitude"), lang.longitude)
        logger.info("Loaded %d languoids from %s", len(self._by_glottocode), path)

    def load_geo(self, path: Path) -> None:
        """Load ``languages_and_dialects_geo.csv`` (glottocode, macroarea, coordinates)."""
        count = 0
        with path.open("r", encoding="utf-8", newline="") as fh:
            for row in csv.DictReader(fh):
                code = row["glottocode"]
                lang = self._by_glottocode.setdefault(code, Languoid(code, row.get("name", "")))
                lang.macroarea = row.get("macroarea", "") or lang.macroarea
                lang.level = lang.level or row.get("level", "")
                lang.latitude = _safe_float(row.get("latitude"), lang.latitude)
                lang.longitude = _safe_float(row.get("longitude"), lang.longitude)
                count += 1
        logger.info("Loaded geography for %d languoids from %s", count, path)

    def lookup(self, code: str) -> Languoid | None:
        return self._by_glottocode.get(code)

    def family_id(self, code: str) -> str | None:
        lang = self.lookup(code)
        if lang is None or not lang.family_glottocode:
            return None
        return lang.family_glottocode

    def family_name(self, family_id: str | None) -> str | None:
        """Human-readable name of a top-level family, or None if unknown."""
        if not family_id:
            return None
        lang = self.lookup(family_id)
        return lang.name if lang and lang.name else None

    def macroarea(self, code: str) -> str | None:
        lang = self.lookup(code)
        return lang.macroarea if lang and lang.macroarea else None

    def coordinates(self, code: str) -> tuple[float, float] | None:
        lang = self.lookup(code)
        if lang is None or lang.latitude is None or lang.longitude is None:
            return None
        return lang.latitude, lang.longitude


def _safe_float(val: Any, default: float | None = None) -> float | None:
    if val is None or val == "":
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default
