# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for summarising ``--color`` segments."""

from __future__ import annotations

import pytest

from hackcheck.coverage import CHECKED, PARTIAL, UNCHECKED, CoverageReport, summarize_coverage
from hackcheck.models import ColorSegment
from hackcheck.translate import Position, Range


def _segments(*pairs: tuple[str, str]) -> list[ColorSegment]:
    return [ColorSegment(color=color, text=text) for color, text in pairs]


def test_empty_file_is_fully_checked() -> None:
    assert CoverageReport().percent == 100.0
    assert summarize_coverage([]).percent == 100.0


def test_counts_ignore_whitespace_and_default_segments() -> None:
    report = summarize_coverage(
        _segments(("default", "<?hh\n"), (CHECKED, "$a = 1;"), ("default", "\n"), (UNCHECKED, "$b "), (PARTIAL, "f()")),
    )

    assert report.counts == {CHECKED: 6, PARTIAL: 3, UNCHECKED: 2}
    assert report.percent == pytest.approx(100.0 * 6 / 11)


def test_uncovered_spans_track_lines_and_columns() -> None:
    report = summarize_coverage(
        _segments(("default", "<?hh\n\n"), (CHECKED, "foo("), (UNCHECKED, "$x"), (CHECKED, ");\n"), (PARTIAL, "bar\nbaz")),
    )

    assert report.uncovered == [
        (UNCHECKED, Range(start=Position(line=2, character=4), end=Position(line=2, character=6))),
        (PARTIAL, Range(start=Position(line=3, character=0), end=Position(line=4, character=3))),
    ]


def test_blank_unchecked_segments_are_not_reported() -> None:
    report = summarize_coverage(_segments((UNCHECKED, "  \n"), (CHECKED, "x")))

    assert report.uncovered == []
    assert report.percent == 100.0
