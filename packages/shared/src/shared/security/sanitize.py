from __future__ import annotations

import re

MAX_TEXT_LENGTH = 500

_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize_user_text(value: object, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Strip angle brackets and surrounding whitespace, then cap the length.

    Non-string input sanitizes to an empty string.
    """
    if not isinstance(value, str):
        return ""
    return _ANGLE_BRACKETS.sub("", value).strip()[:max_length]
