"""
text.py — Name canonicalization and filter-token normalization.

`canonicalize` is the identity rule for organizations: two organization names
whose canonical forms are equal name the *same* organization, everywhere
(registry upserts, listing dedupe, officer-profile keys, migration).

Usage:
    from campuspay.utils.text import canonicalize

    canonicalize("  Société  Générale ")  # -> "societe generale"
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")


def _collapse(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def strip_diacritics(value: str) -> str:
    """NFKD-decompose and drop combining marks ("é" -> "e")."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def canonicalize(name: Any) -> str:
    """
    Canonical organization key: trimmed, whitespace-collapsed,
    diacritic-stripped, lowercased.

    Total: None, non-strings and empty input never raise; None and "" give "".
    """
    return _collapse(strip_diacritics(_collapse(name))).lower()


def normalize_filter_value(value: Any) -> str:
    """
    Normalize short filter tokens (student year, block) for comparison.

    Same as `canonicalize` minus diacritic stripping.
    """
    return _collapse(value).lower()
