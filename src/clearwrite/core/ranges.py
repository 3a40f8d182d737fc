"""Structural position spans used by the overlay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class StructuralRange:
    """Half-open span ``[start, end)`` expressed in structural document positions.

    Negative bounds clamp to 0 and reversed bounds are swapped, so every
    instance satisfies ``0 <= start <= end``.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start, "start")
        end = self._coerce_index(self.end, "end")
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"StructuralRange {label} must be an integer") from exc
        return max(0, number)

    def within(self, size: int) -> bool:
        """Return ``True`` when the range fits inside a document of ``size`` positions."""

        return self.end <= size

    def expand(self, *, before: int = 0, after: int = 0, upper: int | None = None) -> StructuralRange:
        """Return a new range widened by ``before``/``after``, capped at ``upper``."""

        end = self.end + max(0, after)
        if upper is not None:
            end = min(end, upper)
        return StructuralRange(start=max(0, self.start - max(0, before)), end=end)


__all__ = ["StructuralRange"]
