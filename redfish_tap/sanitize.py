from __future__ import annotations

import re

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_TRAILING_UNDERSCORES = re.compile(r"_+$")
_LEADING_UNDERSCORES = re.compile(r"^_+")
_TRAILING_DOTS = re.compile(r"\.+$")


def sanitize_id(raw: str | None) -> str:
    """Turn a vendor label into a data point path segment.

    Every disallowed character becomes its own ``_`` (runs are not collapsed),
    so ``"CPU Fan #1"`` maps to ``"CPU_Fan__1"``. Symbol-only input yields an
    empty string.
    """
    if raw is None:
        return ""
    value = _INVALID_CHARS.sub("_", str(raw).strip())
    value = _TRAILING_UNDERSCORES.sub("", value)
    value = _LEADING_UNDERSCORES.sub("", value)
    return _TRAILING_DOTS.sub("", value)
