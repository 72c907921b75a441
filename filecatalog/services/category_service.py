"""Semantic file categories expressed as extension sets."""

from __future__ import annotations

from enum import StrEnum

from filecatalog.exceptions import CatalogValidationError


class Category(StrEnum):
    """Named groups of file extensions used for filtering."""

    DOCUMENTS = "documents"
    IMAGES = "images"
    VIDEOS = "videos"
    AUDIO = "audio"
    ARCHIVES = "archives"


CATEGORY_EXTENSIONS: dict[Category, frozenset[str]] = {
    Category.DOCUMENTS: frozenset(
        {
            ".pdf", ".doc", ".docx", ".odt", ".rtf", ".txt", ".md",
            ".xls", ".xlsx", ".ods", ".csv",
            ".ppt", ".pptx", ".odp",
        }
    ),
    Category.IMAGES: frozenset(
        {
            ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp",
            ".svg", ".tif", ".tiff", ".heic", ".ico",
        }
    ),
    Category.VIDEOS: frozenset(
        {".mp4", ".mkv", ".avi", ".mov", ".wmv", ".webm", ".flv", ".m4v", ".mpg", ".mpeg"}
    ),
    Category.AUDIO: frozenset(
        {".mp3", ".wav", ".flac", ".aac", ".ogg", ".m4a", ".wma", ".opus"}
    ),
    Category.ARCHIVES: frozenset(
        {".zip", ".rar", ".7z", ".tar", ".gz", ".tgz", ".bz2", ".xz"}
    ),
}


def parse_category(value: str | Category) -> Category:
    """Validate a category label. Raises CatalogValidationError on unknown values."""
    try:
        return Category(value.lower() if isinstance(value, str) else value)
    except ValueError as exc:
        allowed = ", ".join(c.value for c in Category)
        raise CatalogValidationError(
            f"Unknown category {value!r}; expected one of: {allowed}"
        ) from exc


def category_extensions(category: Category) -> list[str]:
    """Return the category's extensions in a stable order."""
    return sorted(CATEGORY_EXTENSIONS[category])

