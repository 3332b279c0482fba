# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Find symbols the typechecker reports as bound more than once."""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .client import HackClient
from .models import SearchResult

LOGGER = logging.getLogger(__name__)

NAME_ALREADY_BOUND_CODE: Final[int] = 2012
_NAME_ALREADY_BOUND: Final[re.Pattern[str]] = re.compile(r"^Name already bound: (.*)$")


@dataclass(slots=True)
class DuplicateSymbol:
    """A symbol together with every definition the search index knows about."""

    name: str
    definitions: list[SearchResult] = field(default_factory=list)


async def find_duplicate_definitions(client: HackClient) -> list[DuplicateSymbol]:
    """Collect definitions of every symbol reported as already bound.

    Each symbol is searched once. Symbols whose search returns at most one hit
    are logged and skipped.

    Returns:
        list[DuplicateSymbol]: Symbols ordered by number of definitions, most first.
    """

    result = await client.check()
    if result is None:
        return []

    duplicates: dict[str, DuplicateSymbol] = {}
    searched: set[str] = set()
    for error in result.effective_errors():
        primary = error.primary
        if primary is None or primary.code != NAME_ALREADY_BOUND_CODE:
            continue
        match = _NAME_ALREADY_BOUND.match(primary.descr)
        if match is None:
            continue
        symbol = match.group(1)
        if symbol in searched:
            continue
        searched.add(symbol)
        hits = await client.search(symbol)
        if not hits or len(hits) <= 1:
            LOGGER.info("Couldn't get results for %s", symbol)
            continue
        definitions = [hit for hit in hits if hit.name == symbol]
        if definitions:
            duplicates[symbol] = DuplicateSymbol(symbol, definitions)

    return sorted(duplicates.values(), key=lambda dup: len(dup.definitions), reverse=True)


def write_duplicates_csv(path: Path, duplicates: Sequence[DuplicateSymbol]) -> None:
    """Append ``duplicates`` to ``path``: a symbol row, then one row per definition."""

    with path.open("a", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        for duplicate in duplicates:
            writer.writerow([duplicate.name])
            for definition in duplicate.definitions:
                writer.writerow(["", definition.filename, definition.line, definition.scope])


__all__ = ["NAME_ALREADY_BOUND_CODE", "DuplicateSymbol", "find_duplicate_definitions", "write_duplicates_csv"]
