"""Shared test helpers and stub classes.

Import from here instead of duplicating these stubs in individual test files.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Callable, Iterable, Mapping, Sequence

from clearwrite.grammar.client import GrammarServiceError

Responder = Callable[[str], Iterable[Mapping[str, Any]]]


def make_match(
    offset: int,
    length: int,
    *,
    message: str = "Possible issue",
    short_message: str = "",
    replacements: Sequence[str] = (),
    rule_id: str = "RULE",
    issue_type: str = "grammar",
    category: str = "Grammar",
) -> dict[str, Any]:
    """Build a LanguageTool-style match payload."""

    return {
        "message": message,
        "shortMessage": short_message,
        "offset": offset,
        "length": length,
        "replacements": [{"value": value} for value in replacements],
        "rule": {
            "id": rule_id,
            "description": f"{rule_id} description",
            "issueType": issue_type,
            "category": {"id": category.upper(), "name": category},
        },
    }


def word_responder(corrections: Mapping[str, str], *, rule_id: str = "MORFOLOGIK_RULE_EN_US") -> Responder:
    """Return a responder flagging every whole-word occurrence of the mapping keys."""

    def respond(text: str) -> list[dict[str, Any]]:
        matches: list[dict[str, Any]] = []
        for word, replacement in corrections.items():
            for found in re.finditer(rf"\b{re.escape(word)}\b", text):
                matches.append(
                    make_match(
                        found.start(),
                        len(word),
                        message=f"Possible spelling mistake found: {word}",
                        replacements=[replacement],
                        rule_id=rule_id,
                        issue_type="misspelling",
                        category="Possible Typo",
                    )
                )
        matches.sort(key=lambda match: match["offset"])
        return matches

    return respond


class FakeChecker:
    """In-memory grammar checker recording every request.

    ``fail_on`` makes requests containing any of the markers raise like an
    unavailable service; ``delay`` holds each request open on the event loop.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        *,
        fail_on: Sequence[str] = (),
        delay: float = 0.0,
    ) -> None:
        self._responder = responder
        self._fail_on = tuple(fail_on)
        self._delay = delay
        self.calls: list[str] = []
        self.languages: list[str | None] = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def check(self, text: str, *, language: str | None = None) -> list[dict[str, Any]]:
        self.calls.append(text)
        self.languages.append(language)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
        finally:
            self.in_flight -= 1
        if any(marker in text for marker in self._fail_on):
            raise GrammarServiceError("Service unavailable", status_code=503)
        if self._responder is None:
            return []
        return list(self._responder(text))

    async def aclose(self) -> None:
        self.closed = True
