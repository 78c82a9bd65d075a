"""
Log sanitising for client-supplied data.

Frames, chat text and player names come straight from clients and must not
be able to forge log lines or smuggle control characters into aggregators.
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


def sanitize_log_data(data: object, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Truncates first so escaping cannot cut an escape sequence in half.

    Args:
        data: Raw user data (non-strings are converted with str()).
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    text = data if isinstance(data, str) else str(data)
    truncated = text[:max_length]
    was_truncated = len(text) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Replace backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized
