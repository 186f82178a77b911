"""Filesystem-safe path segments derived from entry titles."""

from __future__ import annotations

import re

__all__ = ["sanitize_segment", "join_segments"]

_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|\n\r]')
# ECMAScript `\s`, not Python's Unicode `\s` (no \x1c-\x1f or \x85; includes \ufeff).
_WHITESPACE = re.compile(
    "[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]"
)

PATH_SEPARATOR = "/"


def sanitize_segment(title: str) -> str:
    """Return ``title`` with illegal characters replaced and one whitespace removed.

    Only the first whitespace character is stripped. Existing progress logs
    store paths built with this rule, so resumed runs depend on it staying
    exactly as is.

    Examples:
        >>> sanitize_segment("a/b: c d")
        'a_b_c d'
    """

    if not title:
        return ""
    return _WHITESPACE.sub("", _ILLEGAL_CHARS.sub("_", title), count=1)


def join_segments(segments) -> str:
    """Join sanitized segments with the hierarchy separator."""

    return PATH_SEPARATOR.join(segments)
