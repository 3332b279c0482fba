# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Turn a merged check result into per-file, 0-indexed diagnostics."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from pydantic import BaseModel, ConfigDict

from .models import CheckResult, ErrorEntry, MessagePart, Severity
from .paths import IdentityPathMapper, PathMapper

TYPECHECK_SOURCE: Final[str] = "Hack"


class Position(BaseModel):
    """0-indexed line and character."""

    model_config = ConfigDict(frozen=True)

    line: int
    character: int


class Range(BaseModel):
    """Half-open span between two positions."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_tool(cls, line: int, start: int, end: int) -> Range:
        """Convert the typechecker's 1-indexed ``line``/``start``/``end`` columns.

        ``end`` is inclusive in the tool's 1-indexed scheme, which makes it the
        exclusive end in 0-indexed coordinates unchanged.
        """

        return cls(
            start=Position(line=line - 1, character=start - 1),
            end=Position(line=line - 1, character=end),
        )


class DiagnosticEntry(BaseModel):
    """A positioned diagnostic ready for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    range: Range
    message: str
    severity: Severity
    code: int | None = None
    source: str


type DiagnosticMap = dict[str, list[DiagnosticEntry]]


def format_message(parts: Sequence[MessagePart]) -> str:
    """Join every message part as ``descr [code]``, one per line."""

    return "\n".join(f"{part.descr} [{part.code}]" for part in parts)


def entry_to_diagnostic(entry: ErrorEntry, path_mapper: PathMapper) -> DiagnosticEntry | None:
    """Build the diagnostic for one error, located at its first message part."""

    primary = entry.primary
    if primary is None:
        return None
    return DiagnosticEntry(
        file_path=path_mapper.to_editor(primary.path),
        range=Range.from_tool(primary.line, primary.start, primary.end),
        message=format_message(entry.message_parts),
        severity=Severity.ERROR,
        code=primary.code,
        source=TYPECHECK_SOURCE,
    )


def translate(result: CheckResult | None, path_mapper: PathMapper | None = None) -> DiagnosticMap:
    """Group the errors of ``result`` by editor path.

    Args:
        result: Merged check result; ``None`` means the status is unknown.
        path_mapper: Collaborator mapping tool paths to editor paths.

    Returns:
        DiagnosticMap: Diagnostics per file in discovery order. Empty when the
        result is absent or passed, which tells the caller to publish nothing.
    """

    if result is None or result.passed:
        return {}
    mapper = path_mapper or IdentityPathMapper()
    diagnostics: DiagnosticMap = {}
    for entry in result.errors:
        diagnostic = entry_to_diagnostic(entry, mapper)
        if diagnostic is None:
            continue
        diagnostics.setdefault(diagnostic.file_path, []).append(diagnostic)
    return diagnostics


__all__ = [
    "TYPECHECK_SOURCE",
    "DiagnosticEntry",
    "DiagnosticMap",
    "Position",
    "Range",
    "entry_to_diagnostic",
    "format_message",
    "translate",
]
