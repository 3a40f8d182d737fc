"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from clearwrite.editor.document_model import RichDocument
from clearwrite.events import EventBus


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep developer overrides and the home directory out of every test."""

    for name in list(os.environ):
        if name.startswith("CLEARWRITE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLEARWRITE_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def two_paragraphs() -> RichDocument:
    return RichDocument.from_text("Teh cat sat.\n\nIt were late.", document_id="doc-1")
