"""Rendering of Telegram message entities into markup (core domain).

Telegram delivers rich text as plain text plus a flat list of annotation
intervals. Offsets are counted in UTF-16 code units, so the renderer walks the
text in those units rather than in Python characters.

The sweep keeps a stack of open intervals: at every position it closes what
ends there, then opens what starts there (longest first, so an outer span wraps
an inner one that shares its start), then emits the character.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence

from core.models import Annotation, EntityKind, RenderMode

LOGGER = logging.getLogger(__name__)

MARKDOWN_V2_SPECIALS = "_*[]()~`>#+-=|{}.!\\"
_MARKDOWN_V2_RE = re.compile("([" + re.escape(MARKDOWN_V2_SPECIALS) + "])")
_LINK_DESTINATION_RE = re.compile(r"([)\\])")

_QUOTES = (EntityKind.BLOCKQUOTE, EntityKind.EXPANDABLE_BLOCKQUOTE)


def escape_markdown_v2(text: str) -> str:
    """Prefix every MarkdownV2 special character with a backslash."""

    if not text:
        return ""
    return _MARKDOWN_V2_RE.sub(r"\\\1", text)


def utf16_units(text: str) -> List[str]:
    """Map each UTF-16 code unit position to the character emitted there.

    A character outside the BMP takes two positions; it is emitted at the first
    one and the second holds an empty string.
    """

    units: List[str] = []
    for char in text:
        units.append(char)
        if ord(char) > 0xFFFF:
            units.append("")
    return units


def has_crossing(annotations: Sequence[Annotation]) -> bool:
    """Return True when two intervals overlap without one containing the other."""

    ordered = sorted(annotations, key=lambda a: (a.start, -a.end))
    for index, outer in enumerate(ordered):
        for inner in ordered[index + 1 :]:
            if inner.start >= outer.end:
                break
            if inner.end > outer.end:
                return True
    return False


def _tag(annotation: Annotation, opening: bool, mode: RenderMode) -> str:
    platform = mode is RenderMode.PLATFORM
    kind = annotation.kind

    if kind is EntityKind.BOLD:
        return "*" if platform else "**"
    if kind is EntityKind.ITALIC:
        return "_" if platform else "*"
    if kind is EntityKind.UNDERLINE:
        if platform:
            return "__"
        return "<u>" if opening else "</u>"
    if kind is EntityKind.STRIKETHROUGH:
        return "~" if platform else "~~"
    if kind is EntityKind.SPOILER:
        if platform:
            return "||"
        return "<mark>" if opening else "</mark>"
    if kind is EntityKind.CODE:
        return "`"
    if kind is EntityKind.PRE:
        return "```" + (annotation.language or "") + "\n" if opening else "\n```"
    if kind is EntityKind.TEXT_LINK:
        return "[" if opening else f"]({_destination(annotation.url or '', mode)})"
    if kind is EntityKind.TEXT_MENTION:
        return "[" if opening else f"](tg://user?id={annotation.user_id})"
    if kind in _QUOTES:
        if platform:
            return ">" if opening else ""
        return "> " if opening else "\n"
    return ""


def _destination(url: str, mode: RenderMode) -> str:
    if mode is RenderMode.PLATFORM:
        return _LINK_DESTINATION_RE.sub(r"\\\1", url)
    return url


def _usable(annotations: Iterable[Annotation], size: int) -> List[Annotation]:
    usable: List[Annotation] = []
    for annotation in annotations:
        start = max(annotation.start, 0)
        end = min(annotation.end, size)
        if end <= start:
            continue
        if (start, end) != (annotation.start, annotation.end):
            annotation = Annotation(
                kind=annotation.kind,
                offset=start,
                length=end - start,
                url=annotation.url,
                user_id=annotation.user_id,
                language=annotation.language,
            )
        usable.append(annotation)
    return usable


def _inside_quote(intervals: Sequence[Annotation], stack: Sequence[int], position: int) -> bool:
    return any(
        intervals[index].kind in _QUOTES and intervals[index].end > position for index in stack
    )


def render(text: str, annotations: Sequence[Annotation], mode: RenderMode = RenderMode.STANDARD) -> str:
    """Convert text plus annotation intervals into markup.

    Standard mode produces Markdown with a few HTML tags and never escapes.
    Platform mode produces Telegram MarkdownV2 and escapes every literal
    character from the special set.
    """

    if not text:
        return ""
    platform = mode is RenderMode.PLATFORM
    if not annotations:
        return escape_markdown_v2(text) if platform else text

    units = utf16_units(text)
    size = len(units)
    intervals = _usable(annotations, size)
    if has_crossing(intervals):
        # Best effort: the stack closes in LIFO order even when the input is
        # not properly nested.
        LOGGER.debug("Rendering crossing entity intervals in LIFO order")

    opening: List[List[int]] = [[] for _ in range(size + 1)]
    closing: List[List[int]] = [[] for _ in range(size + 1)]
    for index, annotation in enumerate(intervals):
        opening[annotation.start].append(index)
        closing[annotation.end].append(index)

    out: List[str] = []
    stack: List[int] = []

    for position in range(size + 1):
        # Intervals already popped by an earlier out-of-order close are done.
        pending = {index for index in closing[position] if index in stack}
        while pending:
            index = stack.pop()
            out.append(_tag(intervals[index], False, mode))
            pending.discard(index)

        for index in sorted(opening[position], key=lambda i: intervals[i].length, reverse=True):
            out.append(_tag(intervals[index], True, mode))
            stack.append(index)

        if position < size:
            char = units[position]
            out.append(escape_markdown_v2(char) if platform else char)
            if platform and char == "\n" and _inside_quote(intervals, stack, position + 1):
                out.append(">")

    return "".join(out)
