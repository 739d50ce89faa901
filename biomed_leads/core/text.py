"""Name canonicalisation used for natural keys and fuzzy comparison."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_PREPOSITIONS = re.compile(r"\b(de|da|do|das|dos)\b")
_LEGAL_SUFFIX = re.compile(r"(\s+\b(ltda|me|epp|eireli|sa|ss)\b)+$")


def normalize(value: str) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _NON_ALNUM.sub("", stripped)
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_location_name(value: str) -> str:
    return _WHITESPACE.sub(" ", _PREPOSITIONS.sub("", normalize(value))).strip()


def strip_legal_suffix(normalized: str) -> str:
    """Drop trailing company-type designators (ltda, me, ...) from a normalized name."""
    return _LEGAL_SUFFIX.sub("", normalized).strip() or normalized
