"""Phoneme symbol normalisation and phoneme-class membership."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Mapping

# Length marks: long, half-long, and the combining extra-short breve.
_LENGTH_RE = re.compile("[ːˑ̆]")

_MULTI_WS_RE = re.compile(r"\s+")


def normalize_unicode(text: str, form: str = "NFC") -> str:
    """Apply Unicode normalisation (NFC or NFKC)."""
    return unicodedata.normalize(form, text)


def strip_length(symbol: str) -> str:
    """Remove length marks so ``yː`` and ``y`` count as the same feature."""
    return _LENGTH_RE.sub("", symbol)


def normalize_phoneme(symbol: str, collapse_length: bool = True) -> str:
    """NFC symbol with whitespace removed and, optionally, length marks stripped.

    Length marks are stripped from the decomposed form, since NFC folds a
    combining breve into precomposed vowels such as ``ĕ``.
    """
    text = _MULTI_WS_RE.sub("", normalize_unicode(symbol, "NFD"))
    if collapse_length:
        # A bare length mark is not a segment; keep it rather than emit "".
        text = strip_length(text) or text
    return normalize_unicode(text)


def inventory_features(
    phonemes: Iterable[str],
    classes: Mapping[str, Iterable[str]] | None = None,
    collapse_length: bool = True,
) -> frozenset[str]:
    """Return every feature id a language's inventory exhibits.

    Feature ids are normalised phoneme symbols plus the names of any
    configured classes with at least one member in the inventory.
    """
    symbols = {normalize_phoneme(p, collapse_length) for p in phonemes if p.strip()}
    features = set(symbols)
    for name, members in (classes or {}).items():
        normalised = {normalize_phoneme(m, collapse_length) for m in members}
        if symbols & normalised:
            features.add(name)
    return frozenset(features)
