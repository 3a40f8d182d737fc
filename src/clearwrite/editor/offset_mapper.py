"""Translate flat-text offsets into structural document positions."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Sequence

from .document_model import BLOCK_SEPARATOR, Block

__all__ = ["MappedPosition", "OffsetMap", "to_structural_position"]


@dataclass(slots=True, frozen=True)
class MappedPosition:
    """Structural position produced for a flat offset.

    ``exact`` is ``False`` when the offset pointed past the end of the flat
    text and the position was clamped to the document end.
    """

    position: int
    exact: bool = True


@dataclass(slots=True, frozen=True)
class _Segment:
    flat_start: int
    flat_end: int
    structural_start: int
    structural_size: int


class OffsetMap:
    """Segment table built from one document state.

    The walk accumulates flat offsets exactly like the flat-text serializer:
    :data:`BLOCK_SEPARATOR` between blocks, each inline unit contributing its
    rendered length. Lookups are ``O(log n)`` over the segment table, so one
    map can serve every finding of a recomputation pass.
    """

    __slots__ = ("_segments", "_flat_ends", "_flat_length", "_structural_size")

    def __init__(self, segments: Sequence[_Segment], *, flat_length: int, structural_size: int) -> None:
        self._segments = tuple(segments)
        self._flat_ends = [segment.flat_end for segment in self._segments]
        self._flat_length = flat_length
        self._structural_size = structural_size

    @classmethod
    def build(cls, document: object, *, block_separator: str = BLOCK_SEPARATOR) -> OffsetMap:
        blocks: Sequence[Block] = getattr(document, "blocks")
        segments: list[_Segment] = []
        flat = 0
        structural = 0
        for index, block in enumerate(blocks):
            if index:
                flat += len(block_separator)
            cursor = structural + 1
            if not block.children:
                segments.append(_Segment(flat, flat, cursor, 0))
            for child in block.children:
                flat_length = len(child.flat_text)
                segments.append(_Segment(flat, flat + flat_length, cursor, child.size))
                flat += flat_length
                cursor += child.size
            structural += block.node_size
        return cls(segments, flat_length=flat, structural_size=structural)

    @property
    def flat_length(self) -> int:
        return self._flat_length

    @property
    def structural_size(self) -> int:
        return self._structural_size

    def resolve(self, flat_offset: int) -> MappedPosition:
        """Map ``flat_offset`` and report whether the mapping is trustworthy."""

        offset = max(0, int(flat_offset))
        if offset > self._flat_length or not self._segments:
            return MappedPosition(self._structural_size, exact=False)
        index = bisect_left(self._flat_ends, offset)
        segment = self._segments[index]
        if offset < segment.flat_start:
            # Inside a block separator: snap forward to the next unit.
            return MappedPosition(segment.structural_start)
        delta = min(offset - segment.flat_start, segment.structural_size)
        return MappedPosition(segment.structural_start + delta)

    def to_structural_position(self, flat_offset: int) -> int:
        return self.resolve(flat_offset).position


def to_structural_position(document: object, flat_offset: int) -> int:
    """Return the structural position for ``flat_offset`` in ``document``.

    Offsets past the end of the flat text clamp to the document end; callers
    that need to tell a clamp from a real hit should use :meth:`OffsetMap.resolve`.
    """

    return OffsetMap.build(document).to_structural_position(flat_offset)
