"""Tag normalization for user metadata."""

from __future__ import annotations

import re
import unicodedata

from filecatalog.exceptions import CatalogValidationError
from filecatalog.models.entry import Importance

MAX_TAG_LENGTH = 64

_TAG_DELIMITERS = re.compile(r"[,#]+")


def normalize_tags(raw: str) -> str:
    """Normalize free-form tag input into the canonical comma-joined form.

    - Split on commas and hash marks (``"a, #b,,c"`` -> ``a``, ``b``, ``c``)
    - Trim whitespace around each tag
    - Drop empty segments and repeated tags (first occurrence wins)
    - Re-join with a bare comma

    Raises CatalogValidationError for tags containing control characters or
    longer than MAX_TAG_LENGTH.
    """
    tags: list[str] = []
    seen: set[str] = set()
    for segment in _TAG_DELIMITERS.split(raw):
        tag = segment.strip()
        if not tag:
            continue
        if any(unicodedata.category(ch) == "Cc" for ch in tag):
            raise CatalogValidationError(f"Tag {tag!r} contains control characters")
        if len(tag) > MAX_TAG_LENGTH:
            raise CatalogValidationError(
                f"Tag {tag[:16]!r}... exceeds {MAX_TAG_LENGTH} characters"
            )
        if tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return ",".join(tags)


def split_tags(stored: str) -> list[str]:
    """Split a stored canonical tag string into a list."""
    return [t for t in stored.split(",") if t]


def parse_importance(value: str | Importance) -> Importance:
    """Validate an importance level. Raises CatalogValidationError on unknown values."""
    try:
        return Importance(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in Importance)
        raise CatalogValidationError(
            f"Invalid importance {value!r}; expected one of: {allowed}"
        ) from exc
