"""Pydantic v2 configuration models for the areal enrichment analysis."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class SourceFormat(str, Enum):
    CSV = "csv"
    TSV = "tsv"
    CLDF = "cldf"


class ColumnMapping(BaseModel):
    """Maps source columns to internal fields.

    Defaults follow the PHOIBLE release table, which carries no family or
    coordinate columns; those are then joined from Glottolog.
    """

    sample_id: str = "InventoryID"
    language_code: str = "Glottocode"
    language_name: str = "LanguageName"
    phoneme: str = "Phoneme"
    family_id: str | None = None
    latitude: str | None = None
    longitude: str | None = None
    level: str | None = None
    macroarea: str | None = None


class SourceDef(BaseModel):
    """Definition of the phoneme inventory source."""

    name: str = "inventories"
    path: Path = Path("data/phoible.csv")
    format: SourceFormat = SourceFormat.CSV
    column_mapping: ColumnMapping = Field(default_factory=ColumnMapping)
    delimiter: str | None = None
    encoding: str = "utf-8"
    strict: bool = False


class GeographyConfig(BaseModel):
    """Optional Glottolog tables joined onto the inventory sample."""

    languoid_csv: Path | None = None
    geo_csv: Path | None = None


class SamplingConfig(BaseModel):
    seed: int = 1


class FeatureConfig(BaseModel):
    min_languages: int = 50
    include: list[str] = Field(default_factory=list)
    classes: dict[str, list[str]] = Field(default_factory=dict)
    collapse_length: bool = True


class NeighbourConfig(BaseModel):
    k: int = 10

    @field_validator("k")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("k must be at least 1")
        return v


class PermutationConfig(BaseModel):
    iterations: int = 10000
    seed: int = 20240601
    batch_size: int = 500

    @field_validator("iterations", "batch_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v


class VariantDef(BaseModel):
    """A dataset variant: neighbour mode plus optional macro-area exclusion."""

    name: str
    family_restricted: bool = False
    exclude_macroareas: list[str] = Field(default_factory=list)


def _default_variants() -> list[VariantDef]:
    return [
        VariantDef(name="full"),
        VariantDef(name="cross_family", family_restricted=True),
        VariantDef(name="no_africa", exclude_macroareas=["Africa"]),
    ]


class AnalysisConfig(BaseModel):
    """Top-level analysis configuration."""

    source: SourceDef = Field(default_factory=SourceDef)
    geography: GeographyConfig = Field(default_factory=GeographyConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    neighbours: NeighbourConfig = Field(default_factory=NeighbourConfig)
    permutation: PermutationConfig = Field(default_factory=PermutationConfig)
    variants: list[VariantDef] = Field(default_factory=_default_variants)
    staging_dir: Path = Path("staging")
    output_dir: Path = Path("results")
    workers: int = 1
    log_level: str = "INFO"

    @field_validator("variants")
    @classmethod
    def _unique_names(cls, v: list[VariantDef]) -> list[VariantDef]:
        names = [variant.name for variant in v]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate variant names: {names}")
        return v

    def variant(self, name: str) -> VariantDef:
        for variant in self.variants:
            if variant.name == name:
                return variant
        raise KeyError(f"Unknown variant: {name}")
