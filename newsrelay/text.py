"""Markup stripping, trimming and truncation of feed fields."""

import re

from .entities import decode_entities

MAX_DESCRIPTION_LENGTH = 500
ELLIPSIS = "..."

TAG_PATTERN = re.compile(r"<[^>]*>")


def strip_tags(text: str | None) -> str:
    """Remove every ``<...>`` tag from text (non-recursive)."""
    if not text:
        return ""
    return TAG_PATTERN.sub("", text)


def trim(text: str | None) -> str:
    """Remove leading and trailing whitespace."""
    if not text:
        return ""
    return text.strip()


def truncate(text: str | None, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    """Clamp text to ``max_length`` characters, ending with an ellipsis.

    Lengths are counted in characters, not encoded bytes.

    Args:
        text: Text to clamp
        max_length: Maximum length of the result, ellipsis included

    Returns:
        ``text`` unchanged when short enough, else its first
        ``max_length - 3`` characters followed by ``"..."``
    """
    if not text:
        return ""
    if max_length < len(ELLIPSIS):
        raise ValueError(f"max_length must be at least {len(ELLIPSIS)}: {max_length}")
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def normalize_title(raw: str | None) -> str:
    """Decode entities, strip tags and trim an item or channel title."""
    return trim(strip_tags(decode_entities(raw)))


def normalize_description(
    raw: str | None, max_length: int = MAX_DESCRIPTION_LENGTH
) -> str:
    """Normalize like a title, then truncate to ``max_length``."""
    return truncate(normalize_title(raw), max_length)
