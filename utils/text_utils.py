"""
Text utilities for comparing labels and category names across shops.

Shops are localized (Czech, Slovak, ...), so comparisons strip accents
and case before measuring similarity.
"""

import re
import unicodedata
from typing import Optional, Iterable

from rapidfuzz.distance import Levenshtein


PATH_SEPARATOR = " > "


def normalize_label(label: Optional[str]) -> str:
    """
    Normalize a label for exact comparison.

    - "  Barva " → "barva"
    - None → ""
    """
    if not label:
        return ""
    return label.strip().casefold()


def fold(value: Optional[str]) -> str:
    """
    Reduce text to lowercase ASCII letters and digits.

    Handles accents and separators:
    - "Dámské boty" → "damskeboty"
    - "T-Shirts & Tops" → "tshirtstops"

    Args:
        value: Original text (may have accents, mixed case)

    Returns:
        Folded string, empty for None
    """
    if not value:
        return ""

    # NFD separates base chars from accents
    normalized = unicodedata.normalize('NFD', value.strip().casefold())
    ascii_value = ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )

    return re.sub(r'[^a-z0-9]+', '', ascii_value)


def keywords(value: Optional[str], limit: int = 8) -> list[str]:
    """
    Distinct lowercase words of at least 3 characters, in order of appearance.
    """
    if not value:
        return []

    parts = re.split(r'[^\w]+|_', value.casefold())

    result: list[str] = []
    for part in parts:
        if len(part) >= 3 and part not in result:
            result.append(part)
        if len(result) >= limit:
            break
    return result


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]; 0 when either side is empty."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def truncate(value: Optional[str], limit: int = 160) -> Optional[str]:
    """Trim and shorten to `limit` characters, ending with an ellipsis when cut."""
    if value is None:
        return None

    value = value.strip()
    if len(value) <= limit:
        return value

    return value[:limit - 1].rstrip() + "…"


def join_path(segments: Iterable[Optional[str]]) -> Optional[str]:
    """Join non-empty segments with ' > '; None when nothing is left."""
    cleaned = [s.strip() for s in segments if s and s.strip()]
    return PATH_SEPARATOR.join(cleaned) if cleaned else None


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Return None for None or whitespace-only strings."""
    if value is None or not value.strip():
        return None
    return value
