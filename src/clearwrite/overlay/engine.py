"""Overlay engine mapping grammar findings onto the live document.

The engine owns the current finding set and keeps a derived side table of
annotations (structural ranges) next to the document. Annotations never
become part of the document itself; they are recomputed from scratch from
``document + findings`` whenever either side changes.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from ..core.ranges import StructuralRange
from ..editor.document_model import DocumentChange, DocumentLike
from ..editor.offset_mapper import OffsetMap
from ..events import EventBus, FindingsReplaced, SummaryUpdated
from ..grammar.models import Finding, Severity

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTEXT_CHARS = 10


class OverlayState(str, Enum):
    """Whether the overlay currently renders any annotation."""

    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(slots=True, frozen=True)
class Annotation:
    """A finding mapped onto structural document positions."""

    finding: Finding
    structural_from: int
    structural_to: int
    stable_id: str

    @property
    def range(self) -> StructuralRange:
        return StructuralRange(self.structural_from, self.structural_to)


@dataclass(slots=True, frozen=True)
class SummaryItem:
    """Consumer-facing projection of an annotation."""

    id: str
    structural_from: int
    structural_to: int
    message: str
    replacements: tuple[str, ...]
    context: str
    severity: Severity
    rule_id: str = ""
    category: str = ""
    rule_description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.structural_from,
            "to": self.structural_to,
            "message": self.message,
            "replacements": list(self.replacements),
            "context": self.context,
            "severity": self.severity.value,
            "rule_id": self.rule_id,
            "category": self.category,
            "rule_description": self.rule_description,
        }


@dataclass(slots=True)
class _TrackedFinding:
    finding: Finding
    stable_id: str


SummaryCallback = Callable[[tuple[SummaryItem, ...]], None]


@dataclass(slots=True)
class _Snapshot:
    version: Any = None
    annotations: tuple[Annotation, ...] = ()
    items: tuple[SummaryItem, ...] = ()
    by_id: dict[str, Annotation] = field(default_factory=dict)


class OverlayEngine:
    """Derive annotations and summary items from a document and findings.

    Transitions:

    * :meth:`replace_findings` installs a new finding set (a check cycle
      finished) and recomputes.
    * :meth:`document_changed` recomputes with the same finding set; it runs
      automatically when the document notifies a mutation.
    * :meth:`retire` removes one corrected finding and shifts the findings
      that follow it by the flat-text delta of the correction.

    Each finding's stable id is ``"{offset}-{rule_id}-{index}"`` computed when
    the set is installed, so ids survive every later recomputation.
    """

    def __init__(
        self,
        document: DocumentLike,
        *,
        bus: EventBus | None = None,
        on_summary: SummaryCallback | None = None,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
    ) -> None:
        self._document = document
        self._bus = bus
        self._on_summary = on_summary
        self._context_chars = max(0, context_chars)
        self._tracked: list[_TrackedFinding] = []
        self._snapshot = _Snapshot()
        self._state = OverlayState.EMPTY
        self._suspended = 0
        document.add_listener(self._handle_document_change)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def document(self) -> DocumentLike:
        return self._document

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def findings(self) -> tuple[Finding, ...]:
        return tuple(tracked.finding for tracked in self._tracked)

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        self._ensure_current()
        return self._snapshot.annotations

    @property
    def summary_items(self) -> tuple[SummaryItem, ...]:
        self._ensure_current()
        return self._snapshot.items

    def resolve(self, stable_id: str) -> Annotation | None:
        """Return the live annotation for ``stable_id`` or ``None``."""

        self._ensure_current()
        return self._snapshot.by_id.get(stable_id)

    def summary_item(self, stable_id: str) -> SummaryItem | None:
        self._ensure_current()
        for item in self._snapshot.items:
            if item.id == stable_id:
                return item
        return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def replace_findings(self, findings: Iterable[Finding]) -> None:
        """Install a new finding set and recompute every annotation."""

        ordered = sorted(findings, key=lambda finding: finding.offset)
        self._tracked = [
            _TrackedFinding(finding, f"{finding.offset}-{finding.rule_id}-{index}")
            for index, finding in enumerate(ordered)
        ]
        if self._bus is not None:
            self._bus.publish(
                FindingsReplaced(document_id=self._document_id(), finding_count=len(self._tracked))
            )
        self._recompute()

    def document_changed(self) -> None:
        """Recompute annotations against the current document state."""

        self._recompute()

    def retire(self, stable_id: str, delta: int = 0) -> bool:
        """Drop a corrected finding and rebase the findings after it.

        ``delta`` is the change in flat-text length caused by the correction.
        Findings that overlap the corrected span are dropped because the text
        they described no longer exists.
        """

        target = next((tracked for tracked in self._tracked if tracked.stable_id == stable_id), None)
        if target is None:
            return False
        start, end = target.finding.offset, target.finding.end
        survivors: list[_TrackedFinding] = []
        for tracked in self._tracked:
            if tracked is target:
                continue
            finding = tracked.finding
            if finding.end <= start:
                survivors.append(tracked)
            elif finding.offset >= end:
                survivors.append(_TrackedFinding(finding.rebased(delta), tracked.stable_id))
            else:
                LOGGER.debug("Dropping finding %s overlapping corrected %s", tracked.stable_id, stable_id)
        self._tracked = survivors
        self._recompute()
        return True

    def clear(self) -> None:
        """Forget every finding."""

        self._tracked = []
        self._recompute()

    @contextlib.contextmanager
    def suspended(self) -> Iterator[None]:
        """Ignore document notifications inside the block."""

        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1

    def detach(self) -> None:
        self._document.remove_listener(self._handle_document_change)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _handle_document_change(self, change: DocumentChange) -> None:
        if self._suspended:
            return
        self.document_changed()

    def _ensure_current(self) -> None:
        if self._suspended:
            return
        if self._snapshot.version != self._document_version():
            self._recompute()

    def _recompute(self) -> None:
        document = self._document
        offset_map = OffsetMap.build(document)
        size = document.structural_size()
        annotations: list[Annotation] = []
        for tracked in self._tracked:
            finding = tracked.finding
            start = offset_map.resolve(finding.offset)
            end = offset_map.resolve(finding.end)
            span = StructuralRange(start.position, end.position)
            if not (start.exact and end.exact) or not span.within(size):
                LOGGER.debug(
                    "Dropping stale finding %s: offset=%d length=%d flat_length=%d",
                    tracked.stable_id,
                    finding.offset,
                    finding.length,
                    offset_map.flat_length,
                )
                continue
            annotations.append(
                Annotation(
                    finding=finding,
                    structural_from=span.start,
                    structural_to=span.end,
                    stable_id=tracked.stable_id,
                )
            )
        annotations.sort(key=lambda annotation: annotation.structural_from)
        items = tuple(self._summarize(annotation, size) for annotation in annotations)
        self._snapshot = _Snapshot(
            version=self._document_version(),
            annotations=tuple(annotations),
            items=items,
            by_id={annotation.stable_id: annotation for annotation in annotations},
        )
        self._state = OverlayState.POPULATED if annotations else OverlayState.EMPTY
        self._publish(items)

    def _summarize(self, annotation: Annotation, size: int) -> SummaryItem:
        finding = annotation.finding
        window = annotation.range.expand(
            before=self._context_chars,
            after=self._context_chars,
            upper=size,
        )
        return SummaryItem(
            id=annotation.stable_id,
            structural_from=annotation.structural_from,
            structural_to=annotation.structural_to,
            message=finding.display_message,
            replacements=finding.replacements,
            context=self._document.text_between(window.start, window.end, " "),
            severity=finding.severity,
            rule_id=finding.rule_id,
            category=finding.category,
            rule_description=finding.rule_description,
        )

    def _publish(self, items: tuple[SummaryItem, ...]) -> None:
        if self._on_summary is not None:
            try:
                self._on_summary(items)
            except Exception:
                LOGGER.exception("Summary callback failed")
        if self._bus is not None:
            self._bus.publish(
                SummaryUpdated(
                    document_id=self._document_id(),
                    version_id=int(self._document_version() or 0),
                    items=items,
                    state=self._state,
                )
            )

    def _document_id(self) -> str:
        return str(getattr(self._document, "document_id", ""))

    def _document_version(self) -> Any:
        return getattr(self._document, "version_id", None)


__all__ = ["Annotation", "OverlayEngine", "OverlayState", "SummaryItem"]
