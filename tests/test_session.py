"""Tests for :mod:`clearwrite.services.session`."""

from __future__ import annotations

import asyncio

import pytest

from clearwrite.editor.document_model import RichDocument
from clearwrite.events import CorrectionApplied, SummaryUpdated
from clearwrite.grammar.client import GrammarClient
from clearwrite.overlay.engine import OverlayState
from clearwrite.services.session import GrammarSession
from clearwrite.services.settings import Settings
from tests.helpers import FakeChecker, word_responder

FIXES = {"Teh": "The", "sit": "sat"}


@pytest.mark.asyncio
async def test_check_returns_summary_items() -> None:
    checker = FakeChecker(word_responder(FIXES))
    document = RichDocument.from_text("Teh cat sit.")

    async with GrammarSession(document, checker=checker, auto_check=False) as session:
        items = await session.check()

        assert [item.replacements[0] for item in items] == ["The", "sat"]
        assert session.state is OverlayState.POPULATED
        assert session.summary_items == items


@pytest.mark.asyncio
async def test_settings_flow_into_fetcher_and_scheduler() -> None:
    checker = FakeChecker()
    settings = Settings(language="en-GB", debounce_seconds=0.3, max_fragment_chars=20)
    document = RichDocument.from_text("First sentence here. Second sentence there.")

    async with GrammarSession(document, settings=settings, checker=checker, auto_check=False) as session:
        await session.check()

        assert session.scheduler.debounce_seconds == 0.3
        assert session.fetcher.max_fragment_chars == 20
        assert len(checker.calls) == 3
        assert set(checker.languages) == {"en-GB"}


@pytest.mark.asyncio
async def test_edits_trigger_debounced_recheck() -> None:
    checker = FakeChecker(word_responder(FIXES))
    document = RichDocument.from_text("Teh cat sit.")
    settings = Settings(debounce_seconds=0.01)

    async with GrammarSession(document, settings=settings, checker=checker) as session:
        await session.check()
        document.replace_range(1, 4, "The")
        document.replace_range(9, 12, "sat")
        await asyncio.sleep(0)
        await session.scheduler.wait_idle()

        assert checker.calls == ["Teh cat sit.", "The cat sat."]
        assert session.state is OverlayState.EMPTY


@pytest.mark.asyncio
async def test_fix_all_corrects_document_and_publishes() -> None:
    checker = FakeChecker(word_responder(FIXES))
    document = RichDocument.from_text("Teh cat sit.")
    applied: list[CorrectionApplied] = []

    async with GrammarSession(document, checker=checker, auto_check=False) as session:
        session.bus.subscribe(CorrectionApplied, applied.append)
        await session.check()

        assert session.fix_all() == 2

    assert document.flat_text() == "The cat sat."
    assert [event.replacement for event in applied] == ["sat", "The"]


@pytest.mark.asyncio
async def test_apply_and_apply_first_delegate() -> None:
    checker = FakeChecker(word_responder(FIXES))
    document = RichDocument.from_text("Teh cat sit.")

    async with GrammarSession(document, checker=checker, auto_check=False) as session:
        first, second = await session.check()

        assert session.apply(first.id, "A")
        assert session.apply_first(second.id)
        assert not session.apply(first.id, "The")

    assert document.flat_text() == "A cat sat."


@pytest.mark.asyncio
async def test_summary_updates_reach_bus_subscribers() -> None:
    updates: list[SummaryUpdated] = []
    checker = FakeChecker(word_responder(FIXES))

    async with GrammarSession(RichDocument.from_text("Teh cat sit."), checker=checker, auto_check=False) as session:
        session.bus.subscribe(SummaryUpdated, updates.append)
        await session.check()

    assert updates[-1].state is OverlayState.POPULATED
    assert len(updates[-1].items) == 2


@pytest.mark.asyncio
async def test_stats_reflect_current_text() -> None:
    async with GrammarSession(RichDocument.from_text("One two.\n\nThree."), checker=FakeChecker()) as session:
        stats = session.stats()

    assert (stats.words, stats.characters) == (3, 16)


@pytest.mark.asyncio
async def test_aclose_only_closes_owned_checker() -> None:
    injected = FakeChecker()
    session = GrammarSession(checker=injected)
    await session.aclose()
    assert not injected.closed

    owned_session = GrammarSession(settings=Settings(endpoint="http://localhost:1/v2/check"))
    assert isinstance(owned_session.checker, GrammarClient)
    http_client = owned_session.checker._client
    await owned_session.aclose()
    assert http_client.is_closed
