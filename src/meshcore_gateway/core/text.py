"""Free-text parsing for channel messages."""

from __future__ import annotations

import re

# "<name>: <text>"; non-greedy, so the first colon wins
_NAME_TEXT_RE = re.compile(r"(.*?):\s?(.*)")


def split_channel_text(text: str) -> tuple[str | None, str]:
    """Split a channel message into ``(display_name, text)``.

    Channel messages are conventionally prefixed with the sender's name.
    Without a colon the whole text is returned and the name is ``None``.
    """
    match = _NAME_TEXT_RE.fullmatch(text)
    if match is None:
        return None, text
    return match.group(1) or None, match.group(2)


def mention_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"@\[?{re.escape(name)}\]?", re.IGNORECASE)


def is_mentioned(name: str | None, text: str | None) -> bool:
    """Return True if *text* mentions *name* as ``@name`` or ``@[name]``."""
    if not name or not text:
        return False
    return mention_pattern(name).search(text) is not None
