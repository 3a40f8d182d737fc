"""Dataclasses describing text fragments and grammar findings."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping


class Severity(str, Enum):
    """Display severity of a finding."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(slots=True, frozen=True)
class Fragment:
    """Contiguous slice of flat text plus its absolute start offset."""

    text: str
    start_offset: int

    @property
    def end_offset(self) -> int:
        return self.start_offset + len(self.text)


@dataclass(slots=True, frozen=True)
class Finding:
    """Grammar or style issue addressed by flat-text offsets."""

    message: str
    offset: int
    length: int
    short_message: str = ""
    replacements: tuple[str, ...] = ()
    rule_id: str = ""
    category: str = ""
    severity: Severity = Severity.WARNING
    issue_type: str = ""
    rule_description: str = ""

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def display_message(self) -> str:
        return self.short_message or self.message

    def rebased(self, delta: int) -> Finding:
        """Return a copy whose offset moved by ``delta`` characters."""

        if not delta:
            return self
        return replace(self, offset=self.offset + delta)

    @classmethod
    def from_match(cls, match: Mapping[str, Any], *, offset_shift: int = 0) -> Finding:
        """Build a finding from a LanguageTool-style ``match`` payload.

        Every field is read leniently; absent or malformed values fall back
        to empty defaults instead of raising.
        """

        rule = _mapping(match.get("rule"))
        category = _mapping(rule.get("category"))
        issue_type = _string(rule.get("issueType"))
        replacements = tuple(
            value
            for value in (_replacement_value(entry) for entry in _sequence(match.get("replacements")))
            if value is not None
        )
        return cls(
            message=_string(match.get("message")),
            short_message=_string(match.get("shortMessage")),
            offset=max(0, _int(match.get("offset"))) + offset_shift,
            length=max(0, _int(match.get("length"))),
            replacements=replacements,
            rule_id=_string(rule.get("id")),
            category=_string(category.get("name")),
            severity=Severity.ERROR if issue_type == "misspelling" else Severity.WARNING,
            issue_type=issue_type,
            rule_description=_string(rule.get("description")),
        )


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _sequence(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _string(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _replacement_value(entry: Any) -> str | None:
    if isinstance(entry, Mapping):
        value = entry.get("value")
        return None if value is None else str(value)
    if isinstance(entry, str):
        return entry
    return None


__all__ = ["Finding", "Fragment", "Severity"]
