"""Shared reply formatting helpers.

Both notifiers format replies here. The Bot API adapter sends MarkdownV2,
the Telethon adapter sends HTML.
"""

from __future__ import annotations

import html
import re
from typing import Callable, List

from core.entities import escape_markdown_v2
from core.models import ContentRecord
from core.ports import Notice, NoticeKind

_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)

HELP_TAG_LIMIT = 20


def preview(record: ContentRecord, chars: int) -> str:
    """One-line excerpt of the record body, code blocks collapsed."""

    body = _CODE_BLOCK_RE.sub("[code]", record.body).replace("\n", " ").strip()
    if not body:
        count = len(record.media) if isinstance(record.media, list) else int(record.media is not None)
        return f"{count} media file(s)"
    if len(body) > chars:
        return body[:chars] + "..."
    return body


def forward_label(record: ContentRecord) -> str:
    info = record.source_info
    if info is None or info.kind != "forward":
        return ""
    if info.username:
        return f"@{info.username}"
    return info.first_name or ""


def _tags_line(tags) -> str:
    return " ".join(f"#{tag}" for tag in tags)


def _lines(notice: Notice, bold: Callable[[str], str], plain: Callable[[str], str]) -> List[str]:
    if notice.kind is NoticeKind.EMPTY:
        return [plain("❌ Content cannot be empty")]

    if notice.kind is NoticeKind.HELP:
        tags = list(notice.known_tags[:HELP_TAG_LIMIT])
        lines = [
            bold("📚 tagstash"),
            "",
            plain(f"📊 Records: {notice.total_records}"),
        ]
        if tags:
            lines.append(plain(f"🏷️ Tags: {_tags_line(tags)}"))
        lines.extend(
            [
                "",
                plain("Send or forward anything to save it. Add #tags to label it."),
                plain("Edit the original message to update the saved record."),
            ]
        )
        return lines

    record = notice.record
    if record is None:
        raise ValueError(f"{notice.kind.value} notice requires a record")

    title = "✅ Saved!" if notice.kind is NoticeKind.CREATED else "🔄 Record updated!"
    lines = [bold(title), "", plain(f"🏷️ {_tags_line(record.tags)}")]
    source = forward_label(record)
    if source:
        lines.append(plain(f"📥 Forwarded from: {source}"))
    lines.append(plain(f"📝 {preview(record, notice.preview_chars)}"))
    lines.extend(["", plain(f"🆔 {record.id}")])
    return lines


def format_notice(notice: Notice, mode: str) -> str:
    """Return the reply formatted for the requested mode."""

    if mode == "markdown":
        lines = _lines(notice, lambda text: f"*{escape_markdown_v2(text)}*", escape_markdown_v2)
    elif mode == "html":
        lines = _lines(notice, lambda text: f"<b>{html.escape(text)}</b>", html.escape)
    else:
        raise ValueError(f"Unsupported notification format: {mode}")
    return "\n".join(lines)
