"""
Text utilities for product names, SKUs and slugs.

Used by the field mapper, the matcher and the catalog resolver so all
three agree on what "the same text" means.
"""

import re
import unicodedata
from typing import Optional


_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_NON_WORD = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """
    Remove accent marks while keeping the base characters.

    - "Café Glass" → "Cafe Glass"
    """
    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize('NFD', text)
    return ''.join(c for c in normalized if unicodedata.category(c) != 'Mn')


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize free text for word-set comparison.

    Lowercases, removes accents and punctuation, collapses whitespace:
    - "ROOR  Tech-Beaker 18\"" → "roor techbeaker 18"

    Returns:
        Normalized string ("" for empty input)
    """
    if not text:
        return ""

    text = strip_accents(text).lower()
    text = _NON_WORD.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize_sku(sku: Optional[str]) -> str:
    """
    Normalize a SKU for comparison: uppercase, alphanumerics only.

    - " rr-100/b " → "RR100B"
    """
    if not sku:
        return ""
    return _NON_ALNUM.sub("", strip_accents(sku).upper())


def slugify(name: Optional[str]) -> str:
    """
    Build a URL slug from a category or brand name.

    Lowercase, whitespace runs become "-", everything outside
    [a-z0-9-] is dropped:
    - "Glass Pipes & Bubblers" → "glass-pipes--bubblers"
    """
    if not name:
        return ""
    slug = _WHITESPACE.sub("-", strip_accents(name).strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """
    Clean a text value for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    if value is None:
        return None

    value = str(value).strip()

    if not value:
        return None

    if max_length and len(value) > max_length:
        value = value[:max_length]

    return value
