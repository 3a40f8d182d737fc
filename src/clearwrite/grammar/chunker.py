"""Split flat text into bounded fragments for the grammar service."""

from __future__ import annotations

from .models import Fragment

__all__ = ["DEFAULT_MAX_FRAGMENT_CHARS", "split_text"]

DEFAULT_MAX_FRAGMENT_CHARS = 1_000
_SENTENCE_TERMINATORS = frozenset(".?!")


def split_text(text: str, max_size: int = DEFAULT_MAX_FRAGMENT_CHARS, *, lookback: int | None = None) -> list[Fragment]:
    """Return fragments that concatenate back to exactly ``text``.

    Each fragment is at most ``max_size`` characters. Splits prefer the last
    sentence terminator (``.``, ``?``, ``!``) followed by whitespace or the end
    of the text; the terminator stays in the earlier fragment and the
    whitespace moves to the next one. Without a terminator the split falls
    back to the last whitespace after position 0, and without that it
    hard-cuts at ``max_size``.

    ``lookback`` limits the terminator search to the trailing ``lookback``
    characters of each window; ``None`` searches the whole window.
    """

    if max_size < 1:
        raise ValueError("max_size must be a positive integer")
    fragments: list[Fragment] = []
    offset = 0
    remaining = text
    while remaining:
        if len(remaining) <= max_size:
            fragments.append(Fragment(remaining, offset))
            break
        cut = _split_point(remaining, max_size, lookback)
        fragments.append(Fragment(remaining[:cut], offset))
        offset += cut
        remaining = remaining[cut:]
    return fragments


def _split_point(text: str, max_size: int, lookback: int | None) -> int:
    """Return a cut index in ``[1, max_size]`` for text longer than ``max_size``."""

    floor = 0 if lookback is None else max(0, max_size - max(1, lookback))
    for index in range(max_size - 1, floor - 1, -1):
        if text[index] in _SENTENCE_TERMINATORS and text[index + 1].isspace():
            return index + 1
    # Index 0 is never a legal split: it would yield an empty fragment.
    for index in range(max_size, 0, -1):
        if text[index].isspace():
            return index
    return max_size
