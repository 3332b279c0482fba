# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Summarise ``--color`` output into a type coverage report."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final

from .models import ColorSegment
from .translate import Position, Range

CHECKED: Final[str] = "checked"
PARTIAL: Final[str] = "partial"
UNCHECKED: Final[str] = "unchecked"
_COUNTED: Final[frozenset[str]] = frozenset({CHECKED, PARTIAL, UNCHECKED})


@dataclass(slots=True)
class CoverageReport:
    """Character counts per colour plus the spans that are not fully checked."""

    counts: dict[str, int] = field(default_factory=lambda: dict.fromkeys((CHECKED, PARTIAL, UNCHECKED), 0))
    uncovered: list[tuple[str, Range]] = field(default_factory=list)

    @property
    def percent(self) -> float:
        """Return the share of counted characters that are checked, 0-100."""

        total = sum(self.counts.values())
        if total == 0:
            return 100.0
        return 100.0 * self.counts[CHECKED] / total


def _advance(position: Position, text: str) -> Position:
    newlines = text.count("\n")
    if newlines == 0:
        return Position(line=position.line, character=position.character + len(text))
    return Position(line=position.line + newlines, character=len(text) - text.rfind("\n") - 1)


def summarize_coverage(segments: Sequence[ColorSegment]) -> CoverageReport:
    """Walk ``segments`` in order and tally coverage.

    Only non-whitespace characters are counted; ``default`` segments (comments,
    punctuation, whitespace) are skipped.
    """

    report = CoverageReport()
    cursor = Position(line=0, character=0)
    for segment in segments:
        end = _advance(cursor, segment.text)
        if segment.color in _COUNTED:
            report.counts[segment.color] += sum(1 for char in segment.text if not char.isspace())
            if segment.color != CHECKED and segment.text.strip():
                report.uncovered.append((segment.color, Range(start=cursor, end=end)))
        cursor = end
    return report


__all__ = ["CHECKED", "PARTIAL", "UNCHECKED", "CoverageReport", "summarize_coverage"]
