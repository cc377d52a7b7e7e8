"""Data models for the ingestion layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class Level:
    """Constants for the languoid level carried by a record."""

    LANGUAGE = "language"
    DIALECT = "dialect"


@dataclass(frozen=True)
class InventoryRow:
    """A single (inventory, phoneme) row as read from a source."""

    sample_id: str
    language_code: str
    language_name: str
    phoneme: str
    family_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    level: str = Level.LANGUAGE
    macroarea: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_id": self.sample_id,
            "language_code": self.language_code,
            "language_name": self.language_name,
            "phoneme": self.phoneme,
            "family_id": self.family_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "level": self.level,
            "macroarea": self.macroarea,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> InventoryRow:
        return cls(
            sample_id=d["sample_id"],
            language_code=d["language_code"],
            language_name=d.get("language_name", ""),
            phoneme=d["phoneme"],
            family_id=d.get("family_id"),
            latitude=d.get("latitude"),
            longitude=d.get("longitude"),
            level=d.get("level", Level.LANGUAGE),
            macroarea=d.get("macroarea"),
        )


@dataclass(frozen=True)
class LanguageRecord:
    """One sampled language (or dialect) with its grouping label and location.

    ``family_label`` is never empty: isolates and languages whose family
    could not be resolved are grouped under their own name.
    """

    sample_id: str
    language_code: str
    language_name: str
    family_label: str
    latitude: float
    longitude: float
    family_id: str | None = None
    level: str = Level.LANGUAGE
    macroarea: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_id": self.sample_id,
            "language_code": self.language_code,
            "language_name": self.language_name,
            "family_label": self.family_label,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "family_id": self.family_id,
            "level": self.level,
            "macroarea": self.macroarea,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LanguageRecord:
        return cls(
            sample_id=d["sample_id"],
            language_code=d["language_code"],
            language_name=d.get("language_name", ""),
            family_label=d["family_label"],
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            family_id=d.get("family_id"),
            level=d.get("level", Level.LANGUAGE),
            macroarea=d.get("macroarea"),
        )
