"""Exception and warning types shared across the pipeline."""

from __future__ import annotations


class DataIntegrityError(ValueError):
    """A source record lacks a required field or has an unparsable value."""


class StructuralError(RuntimeError):
    """Tables or matrices disagree on shape or identifiers."""


class NonReproducibilityError(RuntimeError):
    """Two runs with the same seed produced different null distributions."""


class DegenerateStatisticWarning(UserWarning):
    """A feature is present in no language or in every language of a sample."""


class InsufficientNeighboursWarning(UserWarning):
    """Family-restricted search had to pad with same-family neighbours."""


class ConfigError(ValueError):
    """A configuration file cannot be read or is not a YAML mapping."""
