# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Accent and case-insensitive text comparison.

Project and contact names are typed by people ("Perez" vs "Pérez",
"casa a" vs "Casa A"), so every name filter in the analytics pipeline goes
through these helpers instead of an exact comparison.
"""

from __future__ import annotations

import unicodedata
from typing import Optional


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip diacritics and surrounding whitespace.

    ``None`` is treated as an empty string.
    """
    if not text:
        return ""
    lowered = text.lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


def matches(a: Optional[str], b: Optional[str]) -> bool:
    """Return True when both strings are equal once normalized."""
    return normalize(a) == normalize(b)


def includes(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Return True when ``needle`` is contained in ``haystack`` once normalized.

    An empty needle matches any haystack. An empty haystack only matches an
    empty needle.
    """
    norm_needle = normalize(needle)
    if not norm_needle:
        return True
    return norm_needle in normalize(haystack)
