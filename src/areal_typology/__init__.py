"""Areal clustering tests for phonological typology data."""

__version__ = "0.1.0"
