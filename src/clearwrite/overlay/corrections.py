"""Apply replacement candidates from the overlay back into the document."""

from __future__ import annotations

import logging
from typing import Iterable

from ..editor.document_model import DocumentLike
from ..events import CorrectionApplied, CorrectionSkipped, EventBus
from .engine import OverlayEngine, SummaryItem

LOGGER = logging.getLogger(__name__)


class CorrectionApplier:
    """Replace annotated ranges by finding id.

    Every id is re-resolved against the live overlay at the moment it is
    applied; a summary item that went stale since it was rendered is skipped
    rather than applied at an outdated position.
    """

    def __init__(self, document: DocumentLike, overlay: OverlayEngine, *, bus: EventBus | None = None) -> None:
        self._document = document
        self._overlay = overlay
        self._bus = bus

    def apply(self, finding_id: str, replacement: str) -> bool:
        """Replace the range annotated by ``finding_id`` with ``replacement``."""

        annotation = self._overlay.resolve(finding_id)
        if annotation is None:
            LOGGER.info("Skipping correction %s: finding no longer present", finding_id)
            self._publish(CorrectionSkipped(finding_id=finding_id, reason="unresolved"))
            return False

        before = len(self._document.flat_text())
        with self._overlay.suspended():
            self._document.replace_range(annotation.structural_from, annotation.structural_to, replacement)
        delta = len(self._document.flat_text()) - before
        self._overlay.retire(finding_id, delta)
        LOGGER.debug(
            "Applied correction %s at [%d, %d) -> %r (delta=%d)",
            finding_id,
            annotation.structural_from,
            annotation.structural_to,
            replacement,
            delta,
        )
        self._publish(
            CorrectionApplied(
                finding_id=finding_id,
                replacement=replacement,
                structural_from=annotation.structural_from,
                structural_to=annotation.structural_to,
            )
        )
        return True

    def apply_first(self, finding_id: str) -> bool:
        """Apply the first replacement candidate of ``finding_id``."""

        annotation = self._overlay.resolve(finding_id)
        if annotation is None or not annotation.finding.replacements:
            reason = "unresolved" if annotation is None else "no replacements"
            LOGGER.info("Skipping correction %s: %s", finding_id, reason)
            self._publish(CorrectionSkipped(finding_id=finding_id, reason=reason))
            return False
        return self.apply(finding_id, annotation.finding.replacements[0])

    def fix_all(self, items: Iterable[SummaryItem] | None = None) -> int:
        """Apply the first candidate of every item, last position first.

        Working from the end of the document backwards keeps the positions of
        the not-yet-applied items valid. Returns the number of corrections
        applied.
        """

        candidates = [item for item in (self._overlay.summary_items if items is None else items) if item.replacements]
        candidates.sort(key=lambda item: item.structural_from, reverse=True)
        applied = 0
        for item in candidates:
            if self.apply(item.id, item.replacements[0]):
                applied += 1
        LOGGER.debug("Applied %d of %d bulk correction(s)", applied, len(candidates))
        return applied

    def _publish(self, event: CorrectionApplied | CorrectionSkipped) -> None:
        if self._bus is not None:
            self._bus.publish(event)


__all__ = ["CorrectionApplier"]
