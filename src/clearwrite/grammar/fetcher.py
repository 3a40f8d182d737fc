"""Concurrent per-fragment grammar checks merged into one finding list."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable, Mapping, Sequence

from .chunker import DEFAULT_MAX_FRAGMENT_CHARS, split_text
from .client import GrammarChecker
from .models import Finding, Fragment

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_CHECK_CHARS = 2


class FindingFetcher:
    """Scatter fragments to the grammar service and gather rebased findings.

    A fragment whose request fails contributes no findings; the remaining
    fragments still produce a result, so :meth:`fetch` never raises because of
    a single fragment.
    """

    def __init__(
        self,
        checker: GrammarChecker,
        *,
        language: str | None = None,
        max_fragment_chars: int = DEFAULT_MAX_FRAGMENT_CHARS,
        min_check_chars: int = DEFAULT_MIN_CHECK_CHARS,
    ) -> None:
        if max_fragment_chars < 1:
            raise ValueError("max_fragment_chars must be a positive integer")
        self._checker = checker
        self._language = language
        self._max_fragment_chars = max_fragment_chars
        self._min_check_chars = max(0, min_check_chars)

    @property
    def max_fragment_chars(self) -> int:
        return self._max_fragment_chars

    async def check_text(self, text: str) -> list[Finding]:
        """Chunk ``text`` and fetch findings for the whole of it."""

        if len(text) < self._min_check_chars or not text.strip():
            return []
        return await self.fetch(split_text(text, self._max_fragment_chars))

    async def fetch(self, fragments: Iterable[Fragment]) -> list[Finding]:
        """Return findings for ``fragments`` sorted by ascending global offset."""

        batch = list(fragments)
        if not batch:
            return []
        started = time.perf_counter()
        results = await asyncio.gather(*(self._fetch_fragment(fragment) for fragment in batch))
        merged = [finding for findings in results for finding in findings]
        # Stable sort keeps dispatch order for equal offsets.
        merged.sort(key=lambda finding: finding.offset)
        LOGGER.debug(
            "Fetched %d finding(s) across %d fragment(s) in %.1f ms",
            len(merged),
            len(batch),
            (time.perf_counter() - started) * 1000.0,
        )
        return merged

    async def _fetch_fragment(self, fragment: Fragment) -> list[Finding]:
        try:
            matches = await self._checker.check(fragment.text, language=self._language)
        except Exception as exc:
            LOGGER.warning(
                "Grammar check failed for fragment at offset %d (%d chars): %s",
                fragment.start_offset,
                len(fragment.text),
                exc,
            )
            return []
        return _rebase_matches(matches, fragment.start_offset)


def _rebase_matches(matches: Sequence[Mapping[str, Any]] | None, start_offset: int) -> list[Finding]:
    findings: list[Finding] = []
    for match in matches or ():
        if not isinstance(match, Mapping):
            continue
        findings.append(Finding.from_match(match, offset_shift=start_offset))
    return findings


__all__ = ["DEFAULT_MIN_CHECK_CHARS", "FindingFetcher"]
