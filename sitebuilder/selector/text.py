"""Shared text utilities for the selector."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_key(text: str | None) -> str:
    """Lowercase ``text`` and turn whitespace runs into single hyphens."""

    return _WHITESPACE_RE.sub("-", (text or "").strip().lower())


def canonical_category(section_type: str | None, synonyms: Mapping[str, str]) -> str:
    """Map a free-text section type onto a component category.

    Unknown types pass through unchanged so new categories keep working.
    """

    normalized = normalize_key(section_type)
    return synonyms.get(normalized, normalized)


@lru_cache(maxsize=16)
def _count_pattern(nouns: Tuple[str, ...]) -> re.Pattern[str]:
    stems = sorted({noun.lower().rstrip("s") for noun in nouns if noun}, key=len, reverse=True)
    alternatives = "|".join(f"{re.escape(stem)}s?" for stem in stems)
    # Up to two qualifying words may sit between a number of at most three
    # digits and the noun; longer numbers (years) must touch the noun.
    return re.compile(
        rf"\b(?:(\d{{1,3}})\s+(?:[a-z][\w-]*\s+){{1,2}}?|(\d+)\s+)(?:{alternatives})\b",
        flags=re.IGNORECASE,
    )


def parse_content_count(text: str | None, nouns: Sequence[str]) -> Optional[int]:
    """Return ``N`` from phrases such as "3 features" or "3 core services"."""

    if not text or not nouns:
        return None
    match = _count_pattern(tuple(nouns)).search(text)
    if not match:
        logger.debug("No content count found in %r", text)
        return None
    return int(match.group(1) or match.group(2))


def section_text(name: str | None, description: str | None) -> str:
    """Lower-cased ``name description`` string used for keyword checks."""

    return f"{name or ''} {description or ''}".lower()
