"""
Log sanitizing for peer-supplied data.

Frames and control payloads come straight from the network; anything
echoed into logs goes through sanitize_log_data first.
"""

from __future__ import annotations

import re

# Pattern to remove control characters from log data
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting (RTL override, etc.)
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM / Zero-width no-break space
)


def sanitize_log_data(data: str | bytes, max_length: int = 100) -> str:
    """
    Sanitize peer-provided data before logging.

    Truncates first so escaping cannot push the output past max_length
    by a variable amount, then strips control and direction-override
    characters and escapes JSON-dangerous ones.

    Args:
        data: Raw peer data. Bytes are decoded leniently.
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data[: max_length + 1]).decode("utf-8", errors="replace")

    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Replace backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized
