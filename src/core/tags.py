"""Hashtag extraction (core domain)."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

# ASCII word characters plus CJK unified ideographs; other scripts end a tag.
TAG_RE = re.compile(r"#[\w一-龥]+", re.ASCII)
_SLUG_RE = re.compile(r"[^a-z0-9一-龥]+")


def extract_tags(text: str) -> List[str]:
    """Return lowercase tag labels, deduplicated in first-seen order."""

    if not text:
        return []
    return unique(match[1:].lower() for match in TAG_RE.findall(text))


def strip_tags(text: str) -> str:
    """Remove hashtag tokens from text.

    Stored bodies keep their tags inline, so the processor does not call this.
    """

    return TAG_RE.sub("", text or "").strip()


def channel_tag(title: Optional[str]) -> Optional[str]:
    """Build the channel_<slug> tag for a channel title, if one can be made."""

    if not title:
        return None
    slug = _SLUG_RE.sub("_", title.lower()).strip("_")
    if not slug:
        return None
    return f"channel_{slug}"


def unique(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
