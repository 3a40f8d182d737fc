"""Facade wiring a document to the grammar overlay pipeline."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..editor.document_model import DocumentChange, DocumentLike, DocumentStats, RichDocument
from ..events import EventBus
from ..grammar.client import GrammarChecker, GrammarClient
from ..grammar.fetcher import FindingFetcher
from ..overlay.corrections import CorrectionApplier
from ..overlay.engine import OverlayEngine, OverlayState, SummaryItem
from .scheduler import CheckScheduler
from .settings import Settings

LOGGER = logging.getLogger(__name__)


class GrammarSession:
    """Own the overlay, fetcher, scheduler and corrector for one document.

    With ``auto_check`` enabled every document mutation restarts the
    scheduler's debounce timer, so edits (including applied corrections)
    eventually trigger a fresh check.
    """

    def __init__(
        self,
        document: DocumentLike | None = None,
        *,
        settings: Settings | None = None,
        checker: GrammarChecker | None = None,
        bus: EventBus | None = None,
        auto_check: bool = True,
    ) -> None:
        self.settings = settings or Settings()
        self.document: DocumentLike = document if document is not None else RichDocument()
        self.bus = bus or EventBus()
        self._owns_checker = checker is None
        self.checker: GrammarChecker = checker or GrammarClient(self.settings.client_settings())
        self.fetcher = FindingFetcher(
            self.checker,
            language=self.settings.language,
            max_fragment_chars=self.settings.max_fragment_chars,
            min_check_chars=self.settings.min_check_chars,
        )
        self.overlay = OverlayEngine(self.document, bus=self.bus, context_chars=self.settings.context_chars)
        self.corrector = CorrectionApplier(self.document, self.overlay, bus=self.bus)
        self.scheduler = CheckScheduler(
            self.document,
            self.fetcher,
            self.overlay,
            bus=self.bus,
            debounce_seconds=self.settings.debounce_seconds,
            min_check_chars=self.settings.min_check_chars,
        )
        self._auto_check = auto_check
        if auto_check:
            self.document.add_listener(self._handle_document_change)

    @property
    def state(self) -> OverlayState:
        return self.overlay.state

    @property
    def summary_items(self) -> tuple[SummaryItem, ...]:
        return self.overlay.summary_items

    async def check(self) -> tuple[SummaryItem, ...]:
        """Check the document now and return the resulting summary items."""

        await self.scheduler.run_now()
        return self.overlay.summary_items

    def apply(self, finding_id: str, replacement: str) -> bool:
        return self.corrector.apply(finding_id, replacement)

    def apply_first(self, finding_id: str) -> bool:
        return self.corrector.apply_first(finding_id)

    def fix_all(self, items: Iterable[SummaryItem] | None = None) -> int:
        return self.corrector.fix_all(items)

    def stats(self) -> DocumentStats:
        return DocumentStats.from_text(self.document.flat_text())

    async def aclose(self) -> None:
        if self._auto_check:
            self.document.remove_listener(self._handle_document_change)
            self._auto_check = False
        await self.scheduler.aclose()
        self.overlay.detach()
        if self._owns_checker:
            closer: Any = getattr(self.checker, "aclose", None)
            if closer is not None:
                await closer()

    async def __aenter__(self) -> GrammarSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _handle_document_change(self, change: DocumentChange) -> None:
        LOGGER.debug("Document %s changed (v%d); scheduling check", change.document_id, change.version_id)
        self.scheduler.notify_edit()


__all__ = ["GrammarSession"]
