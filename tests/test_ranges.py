"""Tests for :mod:`clearwrite.core.ranges`."""

from __future__ import annotations

import pytest

from clearwrite.core.ranges import StructuralRange


def test_bounds_are_normalized() -> None:
    assert StructuralRange(7, 3) == StructuralRange(3, 7)
    assert StructuralRange(-4, 2) == StructuralRange(0, 2)
    assert StructuralRange("5", 6.0) == StructuralRange(5, 6)


def test_non_integer_bound_is_rejected() -> None:
    with pytest.raises(ValueError):
        StructuralRange("start", 4)


@pytest.mark.parametrize("size,expected", [(10, True), (9, True), (8, False)])
def test_within_document_size(size: int, expected: bool) -> None:
    assert StructuralRange(2, 9).within(size) is expected


def test_expand_clamps_to_zero_and_upper() -> None:
    span = StructuralRange(3, 6)

    assert span.expand(before=10, after=10, upper=8) == StructuralRange(0, 8)
    assert span.expand(before=1, after=2) == StructuralRange(2, 8)
    assert span.expand(before=-5, after=-5) == span
