from __future__ import annotations

from collections.abc import Iterable

from ..errors import ValidationError

MAX_TITLE_CHARS = 10000
MAX_TAG_CHARS = 64


def normalize_title(title: object) -> str:
    if not isinstance(title, str):
        raise ValidationError("title must be a string")
    if not title.strip():
        raise ValidationError("title is empty")
    if len(title) > MAX_TITLE_CHARS:
        raise ValidationError(f"title exceeds {MAX_TITLE_CHARS} characters")
    return title


def normalize_tags(tags: Iterable[object] | None) -> list[str]:
    """Return tags in insertion order, rejecting blanks and duplicates."""

    if tags is None:
        return []
    if isinstance(tags, str):
        raise ValidationError("tags must be a sequence of strings")
    normalized: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError(f"invalid tag: {tag!r}")
        value = tag.strip()
        if not value:
            raise ValidationError("tag is empty")
        if len(value) > MAX_TAG_CHARS:
            raise ValidationError(f"tag exceeds {MAX_TAG_CHARS} characters: {value[:16]}...")
        if value in seen:
            raise ValidationError(f"duplicate tag: {value}")
        seen.add(value)
        normalized.append(value)
    return normalized
