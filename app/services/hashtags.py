"""Hashtag and mention normalization for imported captions."""

import re

HASHTAG_RE = re.compile(r"#(\w+)")
MENTION_RE = re.compile(r"(?<!\w)@(\w+)")


def extract_hashtags(caption: str | None) -> list[str]:
    """Return every #word in the caption, without the '#', lower-cased."""
    if not caption:
        return []
    return [tag.lower() for tag in HASHTAG_RE.findall(caption)]


def extract_mentions(caption: str | None) -> list[str]:
    if not caption:
        return []
    return [handle.lower() for handle in MENTION_RE.findall(caption)]


def normalize_hashtags(explicit: list[str] | None, caption: str | None) -> list[str]:
    """
    Explicit hashtags win and are only lower-cased; otherwise the caption
    is scanned.
    """
    if explicit is not None:
        return [tag.lower() for tag in explicit]
    return extract_hashtags(caption)
