"""Debounced grammar check cycles driven by document edits."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time

from ..editor.document_model import DocumentLike
from ..events import CheckCompleted, CheckStarted, EventBus
from ..grammar.fetcher import DEFAULT_MIN_CHECK_CHARS, FindingFetcher
from ..overlay.engine import OverlayEngine

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0


class CheckScheduler:
    """Collapse bursts of edits into single check cycles.

    Each :meth:`notify_edit` restarts the debounce timer. When the timer fires
    a cycle reads the document's flat text, fetches findings and installs them
    on the overlay. At most one cycle runs at a time; a timer that fires while
    a cycle is in flight marks one rerun that starts as soon as the cycle ends.
    """

    def __init__(
        self,
        document: DocumentLike,
        fetcher: FindingFetcher,
        overlay: OverlayEngine,
        *,
        bus: EventBus | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        min_check_chars: int = DEFAULT_MIN_CHECK_CHARS,
    ) -> None:
        self._document = document
        self._fetcher = fetcher
        self._overlay = overlay
        self._bus = bus
        self._debounce_seconds = max(0.0, debounce_seconds)
        self._min_check_chars = max(0, min_check_chars)
        self._timer: asyncio.Task[None] | None = None
        self._cycle: asyncio.Task[None] | None = None
        self._rerun = False
        self._closed = False
        self._cycles_completed = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    @property
    def is_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def is_checking(self) -> bool:
        return self._cycle is not None and not self._cycle.done()

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    def notify_edit(self) -> None:
        """Restart the debounce timer after a document edit."""

        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("Edit notification outside an event loop; no check scheduled")
            return
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = loop.create_task(self._debounce())

    async def run_now(self) -> None:
        """Run a check cycle immediately and wait until no cycle is in flight."""

        if self._closed:
            return
        self._cancel_timer()
        self._trigger()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for the pending timer and any in-flight cycle to finish."""

        while True:
            task = self._timer if self.is_pending else self._cycle
            if task is None or task.done():
                return
            await asyncio.wait({task})

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._rerun = False
        for task in (self._timer, self._cycle):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._timer = None
        self._cycle = None

    # ------------------------------------------------------------------
    # Cycle management
    # ------------------------------------------------------------------
    async def _debounce(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        if self._timer is asyncio.current_task():
            self._timer = None
        self._trigger()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _trigger(self) -> None:
        if self._closed:
            return
        if self.is_checking:
            self._rerun = True
            return
        self._cycle = asyncio.get_running_loop().create_task(self._run_cycles())

    async def _run_cycles(self) -> None:
        while not self._closed:
            self._rerun = False
            try:
                await self._check_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.exception("Grammar check cycle failed")
            if not self._rerun:
                return

    async def _check_once(self) -> None:
        text = self._document.flat_text()
        document_id = str(getattr(self._document, "document_id", ""))
        version_id = int(getattr(self._document, "version_id", 0) or 0)
        if len(text) < self._min_check_chars:
            LOGGER.debug("Document %s below %d char(s); clearing findings", document_id, self._min_check_chars)
            self._overlay.clear()
            self._cycles_completed += 1
            return
        self._publish(CheckStarted(document_id=document_id, version_id=version_id, characters=len(text)))
        started = time.perf_counter()
        findings = await self._fetcher.check_text(text)
        self._overlay.replace_findings(findings)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._cycles_completed += 1
        LOGGER.debug(
            "Check cycle for %s v%d: %d finding(s) in %.1f ms",
            document_id,
            version_id,
            len(findings),
            elapsed_ms,
        )
        self._publish(
            CheckCompleted(
                document_id=document_id,
                version_id=version_id,
                finding_count=len(findings),
                elapsed_ms=elapsed_ms,
            )
        )

    def _publish(self, event: CheckStarted | CheckCompleted) -> None:
        if self._bus is not None:
            self._bus.publish(event)


__all__ = ["CheckScheduler", "DEFAULT_DEBOUNCE_SECONDS"]
