"""Text helpers for the line editor: grapheme segmentation, display width,
and character classification.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

# Characters treated as word separators by word motion and word kills
_PUNCTUATION_REGEX = re.compile(r"[(){}\[\]<>.,;:'\"!?\+\-=*/\\|&%\^$#@~`]")

# Word separators for command-line tokens; matches is_whitespace_char
_WHITESPACE_REGEX = re.compile(r"[ \t\n\r\f\v]+")

# Unicode line/paragraph separators (not in the control ranges)
_LINE_SEPARATORS = frozenset({"\u2028", "\u2029"})


def graphemes(text: str) -> list[str]:
    """Split *text* into user-perceived characters (grapheme clusters)."""
    return list(grapheme.graphemes(text))


def last_grapheme_length(text: str) -> int:
    """Length in code points of the final grapheme cluster of *text*, or 0."""
    if not text:
        return 0
    clusters = graphemes(text)
    return len(clusters[-1]) if clusters else 1


def first_grapheme_length(text: str) -> int:
    """Length in code points of the first grapheme cluster of *text*, or 0."""
    if not text:
        return 0
    clusters = graphemes(text)
    return len(clusters[0]) if clusters else 1


def is_control_char(char: str) -> bool:
    """Return ``True`` for C0/C1 control characters and DEL."""
    cp = ord(char)
    return cp < 0x20 or cp == 0x7F or 0x80 <= cp <= 0x9F


def strip_control_chars(text: str) -> str:
    """Drop control characters (including line terminators) from *text*."""
    return "".join(ch for ch in text if not is_control_char(ch) and ch not in _LINE_SEPARATORS)


def is_whitespace_char(char: str) -> bool:
    """Return ``True`` if *char* is a whitespace character."""
    return char in (" ", "\t", "\n", "\r", "\f", "\v")


def split_words(text: str) -> list[str]:
    """Split *text* on the same whitespace :func:`is_whitespace_char` recognizes."""
    return [word for word in _WHITESPACE_REGEX.split(text) if word]


def is_punctuation_char(char: str) -> bool:
    """Return ``True`` if *char* is a punctuation character."""
    return bool(_PUNCTUATION_REGEX.match(char))


def _grapheme_width(g: str) -> int:
    """Terminal cell width of one grapheme cluster.

    Control characters and combining marks take no cells, emoji sequences
    take two, everything else is measured by wcwidth on its first code point.
    """
    if not g:
        return 0

    if len(g) == 1:
        if is_control_char(g):
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        # VS16, ZWJ, skin tone modifiers, regional indicators
        if cp in (0xFE0F, 0x200D) or 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2
    if unicodedata.category(first)[0] == "M" or unicodedata.category(first) == "Cf":
        return 0
    return max(_wcwidth.wcwidth(first), 0)


def display_width(text: str) -> int:
    """Number of terminal cells *text* occupies."""
    if text.isascii() and text.isprintable():
        return len(text)
    return sum(_grapheme_width(g) for g in graphemes(text))
