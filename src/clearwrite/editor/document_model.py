"""Block/inline document tree with structural positions and a flat-text view.

Structural addressing follows the ProseMirror convention: every block owns an
opening and a closing token, so a block with ``n`` content positions occupies
``n + 2`` structural positions and its content starts one position after the
block itself. Text runs occupy one position per character and a hard break
occupies exactly one position.

The flat-text serialization joins blocks with :data:`BLOCK_SEPARATOR` and
renders a hard break as :data:`HARD_BREAK_TEXT`. The offset mapper walks the
same tree with the same rule, so the two must only ever change together.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterator, Protocol, Sequence, Union

LOGGER = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"
HARD_BREAK_TEXT = "\n"


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class DocumentRangeError(ValueError):
    """Raised when a structural range does not fit inside the document."""

    def __init__(self, message: str, *, start: int, end: int, size: int) -> None:
        super().__init__(message)
        self.start = start
        self.end = end
        self.size = size


@dataclass(slots=True)
class TextRun:
    """Contiguous text sharing one set of inline marks."""

    text: str
    marks: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return len(self.text)

    @property
    def flat_text(self) -> str:
        return self.text


@dataclass(slots=True)
class HardBreak:
    """Line break inside a block."""

    marks: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return 1

    @property
    def flat_text(self) -> str:
        return HARD_BREAK_TEXT


Inline = Union[TextRun, HardBreak]


@dataclass(slots=True)
class Block:
    """Block-level node (paragraph, heading, ...) holding inline content."""

    children: list[Inline] = field(default_factory=list)
    kind: str = "paragraph"

    @property
    def content_size(self) -> int:
        return sum(child.size for child in self.children)

    @property
    def node_size(self) -> int:
        return self.content_size + 2

    @property
    def text(self) -> str:
        return "".join(child.flat_text for child in self.children)


@dataclass(slots=True)
class DocumentChange:
    """Notification emitted after the document mutates."""

    document_id: str
    version_id: int
    content_hash: str
    structural_from: int
    structural_to: int
    inserted: str


@dataclass(slots=True)
class DocumentStats:
    """Word and character counts derived from the flat text."""

    words: int
    characters: int

    @classmethod
    def from_text(cls, text: str) -> DocumentStats:
        stripped = text.strip()
        return cls(words=len(stripped.split()) if stripped else 0, characters=len(text))


ChangeListener = Callable[[DocumentChange], None]


class DocumentLike(Protocol):
    """Interface the overlay and correction layers expect from a host document."""

    @property
    def blocks(self) -> Sequence[Block]:
        ...

    def flat_text(self) -> str:
        ...

    def structural_size(self) -> int:
        ...

    def text_between(self, start: int, end: int, block_separator: str = BLOCK_SEPARATOR) -> str:
        ...

    def replace_range(self, start: int, end: int, text: str) -> None:
        ...

    def add_listener(self, listener: ChangeListener) -> None:
        ...

    def remove_listener(self, listener: ChangeListener) -> None:
        ...


class RichDocument:
    """Mutable document tree used as the reference host for the overlay core."""

    def __init__(self, blocks: Sequence[Block] | None = None, *, document_id: str | None = None) -> None:
        self._blocks: list[Block] = [_normalize_block(block) for block in (blocks or ())]
        if not self._blocks:
            self._blocks.append(Block())
        self.document_id = document_id or uuid.uuid4().hex
        self.version_id = 1
        self.content_hash = _hash_text(self.flat_text())
        self._listeners: list[ChangeListener] = []

    @classmethod
    def from_text(cls, text: str, *, document_id: str | None = None) -> RichDocument:
        """Build a document whose flat text is exactly ``text``."""

        blocks = [Block(children=_inlines_from_text(segment)) for segment in text.split(BLOCK_SEPARATOR)]
        return cls(blocks, document_id=document_id)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def blocks(self) -> tuple[Block, ...]:
        return tuple(self._blocks)

    def flat_text(self) -> str:
        return BLOCK_SEPARATOR.join(block.text for block in self._blocks)

    def structural_size(self) -> int:
        return sum(block.node_size for block in self._blocks)

    def stats(self) -> DocumentStats:
        return DocumentStats.from_text(self.flat_text())

    def iter_block_starts(self) -> Iterator[tuple[int, Block]]:
        """Yield ``(structural_start, block)`` pairs in document order."""

        position = 0
        for block in self._blocks:
            yield position, block
            position += block.node_size

    def text_between(self, start: int, end: int, block_separator: str = BLOCK_SEPARATOR) -> str:
        """Return the flat text covered by ``[start, end)``.

        Every block whose content touches the range contributes its slice, and
        consecutive contributions are joined with ``block_separator``. Reading
        the whole document with the default separator reproduces
        :meth:`flat_text`.
        """

        start = max(0, start)
        end = min(self.structural_size(), end)
        if start >= end:
            return ""
        pieces: list[str] = []
        for block_start, block in self.iter_block_starts():
            content_start = block_start + 1
            content_end = content_start + block.content_size
            if content_end < start or content_start > end:
                continue
            local_from = max(0, start - content_start)
            local_to = min(block.content_size, end - content_start)
            pieces.append(_slice_inlines(block.children, local_from, local_to))
        return block_separator.join(pieces)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def replace_range(self, start: int, end: int, text: str) -> None:
        """Replace the content between two structural positions with ``text``.

        ``text`` follows the flat-text rule: :data:`BLOCK_SEPARATOR` starts a new
        block and :data:`HARD_BREAK_TEXT` becomes a hard break. Ranges that span
        several blocks merge the surviving edges into one block.
        """

        size = self.structural_size()
        if start < 0 or end < start or end > size:
            raise DocumentRangeError(
                f"Range [{start}, {end}) does not fit document of size {size}",
                start=start,
                end=end,
                size=size,
            )
        first_index, first_offset = self._locate(start, prefer_next=True)
        last_index, last_offset = self._locate(end, prefer_next=False)
        if (last_index, last_offset) < (first_index, first_offset):
            # Collapsed range sitting between two blocks.
            last_index, last_offset = first_index, first_offset

        first_block = self._blocks[first_index]
        last_block = self._blocks[last_index]
        head, _ = _split_inlines(first_block.children, first_offset)
        _, tail = _split_inlines(last_block.children, last_offset)
        marks = _marks_at(first_block.children, first_offset)

        segments = text.split(BLOCK_SEPARATOR)
        replacement: list[Block] = []
        for index, segment in enumerate(segments):
            children = _inlines_from_text(segment, marks=marks)
            kind = "paragraph"
            if index == 0:
                children = head + children
                kind = first_block.kind
            if index == len(segments) - 1:
                children = children + tail
            replacement.append(_normalize_block(Block(children=children, kind=kind)))

        self._blocks[first_index : last_index + 1] = replacement
        self._commit(start, end, text)

    def set_text(self, text: str) -> None:
        """Replace the whole document with ``text``."""

        self.replace_range(0, self.structural_size(), text)

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def version_signature(self) -> str:
        return f"{self.document_id}:{self.version_id}:{self.content_hash}"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _locate(self, position: int, *, prefer_next: bool) -> tuple[int, int]:
        """Return ``(block_index, content_offset)`` for a structural position.

        Positions on a block boundary snap into the following block when
        ``prefer_next`` is set and into the preceding block otherwise.
        """

        last_index = len(self._blocks) - 1
        for index, (block_start, block) in enumerate(self.iter_block_starts()):
            content_start = block_start + 1
            content_end = content_start + block.content_size
            if position < content_start:
                if prefer_next or index == 0:
                    return index, 0
                previous = self._blocks[index - 1]
                return index - 1, previous.content_size
            if position <= content_end:
                return index, position - content_start
            if position == content_end + 1 and index == last_index:
                return index, block.content_size
        return last_index, self._blocks[last_index].content_size

    def _commit(self, start: int, end: int, inserted: str) -> None:
        self.version_id += 1
        self.content_hash = _hash_text(self.flat_text())
        change = DocumentChange(
            document_id=self.document_id,
            version_id=self.version_id,
            content_hash=self.content_hash,
            structural_from=start,
            structural_to=end,
            inserted=inserted,
        )
        LOGGER.debug(
            "Document %s replaced [%s, %s) with %d char(s); version=%s",
            self.document_id,
            start,
            end,
            len(inserted),
            self.version_id,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                LOGGER.exception("Document change listener %r failed", listener)


def _inlines_from_text(text: str, *, marks: tuple[str, ...] = ()) -> list[Inline]:
    children: list[Inline] = []
    for index, line in enumerate(text.split(HARD_BREAK_TEXT)):
        if index:
            children.append(HardBreak(marks=marks))
        if line:
            children.append(TextRun(line, marks))
    return children


def _split_inlines(children: Sequence[Inline], offset: int) -> tuple[list[Inline], list[Inline]]:
    head: list[Inline] = []
    tail: list[Inline] = []
    cursor = 0
    for child in children:
        size = child.size
        if cursor + size <= offset:
            head.append(child)
        elif cursor >= offset:
            tail.append(child)
        else:
            cut = offset - cursor
            assert isinstance(child, TextRun)
            head.append(TextRun(child.text[:cut], child.marks))
            tail.append(TextRun(child.text[cut:], child.marks))
        cursor += size
    return head, tail


def _slice_inlines(children: Sequence[Inline], start: int, end: int) -> str:
    _, rest = _split_inlines(children, start)
    middle, _ = _split_inlines(rest, end - start)
    return "".join(child.flat_text for child in middle)


def _marks_at(children: Sequence[Inline], offset: int) -> tuple[str, ...]:
    # Inserted text inherits the marks of the run it extends.
    cursor = 0
    for child in children:
        end = cursor + child.size
        if isinstance(child, TextRun) and cursor < offset <= end:
            return child.marks
        cursor = end
    if offset == 0 and children and isinstance(children[0], TextRun):
        return children[0].marks
    return ()


def _normalize_block(block: Block) -> Block:
    merged: list[Inline] = []
    for child in block.children:
        if isinstance(child, TextRun):
            if not child.text:
                continue
            previous = merged[-1] if merged else None
            if isinstance(previous, TextRun) and previous.marks == child.marks:
                merged[-1] = TextRun(previous.text + child.text, previous.marks)
                continue
        merged.append(child)
    return Block(children=merged, kind=block.kind)


__all__ = [
    "BLOCK_SEPARATOR",
    "HARD_BREAK_TEXT",
    "Block",
    "DocumentChange",
    "DocumentLike",
    "DocumentRangeError",
    "DocumentStats",
    "HardBreak",
    "Inline",
    "RichDocument",
    "TextRun",
]
