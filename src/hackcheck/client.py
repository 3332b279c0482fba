# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typed ``hh_client`` queries decoded by verb-specific schemas."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache
from typing import Final

from pydantic import TypeAdapter, ValidationError

from .config import HackConfig
from .dispatch import Dispatcher
from .models import (
    AutoCompleteItem,
    CheckResult,
    ColorSegment,
    DefinitionResult,
    FindRefsResult,
    FormatResponse,
    HighlightRef,
    JsonValue,
    OutlineSymbol,
    Query,
    SearchResult,
    TypeAtPosResponse,
    VersionInfo,
)

LOGGER = logging.getLogger(__name__)

AUTO_COMPLETE_TOKEN: Final[str] = "AUTO332"
# ``hh_client --format`` drops the final character of a file without a
# trailing newline unless the end offset is pushed past it.
FORMAT_END_OFFSET: Final[int] = 2
_UNINFORMATIVE_TYPES: Final[frozenset[str]] = frozenset({"(unknown)", "_", "noreturn"})

VERB_VERSION: Final[str] = "--version"
VERB_CHECK: Final[str] = "check"
VERB_COLOR: Final[str] = "--color"
VERB_TYPE_AT_POS: Final[str] = "--type-at-pos"
VERB_OUTLINE: Final[str] = "--outline"
VERB_SEARCH: Final[str] = "--search"
VERB_FIND_REFS: Final[str] = "--ide-find-refs"
VERB_HIGHLIGHT_REFS: Final[str] = "--ide-highlight-refs"
VERB_GET_DEFINITION: Final[str] = "--ide-get-definition"
VERB_AUTO_COMPLETE: Final[str] = "--auto-complete"
VERB_FORMAT: Final[str] = "--format"


@lru_cache(maxsize=None)
def _adapter[T](schema: type[T]) -> TypeAdapter[T]:
    return TypeAdapter(schema)


def decode[T](schema: type[T], raw: JsonValue | None, *, verb: str) -> T | None:
    """Validate ``raw`` against the schema registered for ``verb``.

    Args:
        schema: Model or container type describing the verb's response.
        raw: Merged backend answer.
        verb: Verb name used in log messages.

    Returns:
        T | None: The decoded response, or ``None`` when ``raw`` is absent or
        does not match the schema.
    """

    if raw is None:
        return None
    try:
        return _adapter(schema).validate_python(raw)
    except ValidationError as exc:
        LOGGER.error("Hack: unexpected %s response: %s", verb, exc.errors(include_url=False)[:3])
        return None


def position_arg(line: int, character: int) -> str:
    """Return ``LINE:CHAR`` as expected by the ``--ide-*`` verbs."""

    return f"{line}:{character}"


def insert_auto_complete_token(text: str, offset: int) -> str:
    """Return ``text`` with the completion marker inserted at ``offset``."""

    return f"{text[:offset]}{AUTO_COMPLETE_TOKEN}{text[offset:]}"


class HackClient:
    """One coroutine per ``hh_client`` verb, all routed through a dispatcher."""

    def __init__(self, dispatcher: Dispatcher, workspace: str) -> None:
        self._dispatcher = dispatcher
        self._workspace = workspace

    @classmethod
    def from_config(cls, config: HackConfig) -> HackClient:
        """Build a client wired to the backends described by ``config``."""

        return cls(Dispatcher.from_config(config), config.workspace)

    @property
    def dispatcher(self) -> Dispatcher:
        """Return the dispatcher used for every query."""

        return self._dispatcher

    def query(self, verb: str, extra_args: Sequence[str] = (), stdin: str | None = None) -> Query:
        """Return the :class:`Query` for ``verb`` in this workspace."""

        return Query(verb=verb, extra_args=tuple(extra_args), stdin=stdin, workspace=self._workspace)

    async def raw(self, verb: str, extra_args: Sequence[str] = (), stdin: str | None = None) -> JsonValue | None:
        """Return the merged, undecoded answer for ``verb``."""

        return await self._dispatcher.run(self.query(verb, extra_args, stdin))

    async def version(self) -> VersionInfo | None:
        """Return the backend version, or ``None`` when no backend answered."""

        return decode(VersionInfo, await self.raw(VERB_VERSION), verb=VERB_VERSION)

    async def check(self) -> CheckResult | None:
        """Return the merged full-project check result."""

        return decode(CheckResult, await self.raw(VERB_CHECK), verb=VERB_CHECK)

    async def color(self, file_name: str) -> list[ColorSegment] | None:
        """Return coverage colouring for ``file_name``."""

        return decode(list[ColorSegment], await self.raw(VERB_COLOR, (file_name,)), verb=VERB_COLOR)

    async def type_at_pos(self, file_name: str, line: int, character: int) -> str | None:
        """Return the type at a 1-indexed position, skipping uninformative answers."""

        raw = await self.raw(VERB_TYPE_AT_POS, (f"{file_name}:{line}:{character}",))
        response = decode(TypeAtPosResponse, raw, verb=VERB_TYPE_AT_POS)
        if response is None or not response.type or response.type in _UNINFORMATIVE_TYPES:
            return None
        return response.type

    async def outline(self, text: str) -> list[OutlineSymbol] | None:
        """Return the symbols declared in ``text``."""

        return decode(list[OutlineSymbol], await self.raw(VERB_OUTLINE, (), text), verb=VERB_OUTLINE)

    async def search(self, query: str) -> list[SearchResult] | None:
        """Return workspace symbols matching ``query``."""

        return decode(list[SearchResult], await self.raw(VERB_SEARCH, (query,)), verb=VERB_SEARCH)

    async def ide_find_refs(self, text: str, line: int, character: int) -> list[FindRefsResult] | None:
        """Return references to the symbol at a position in ``text``."""

        raw = await self.raw(VERB_FIND_REFS, (position_arg(line, character),), text)
        return decode(list[FindRefsResult], raw, verb=VERB_FIND_REFS)

    async def ide_highlight_refs(self, text: str, line: int, character: int) -> list[HighlightRef] | None:
        """Return in-buffer occurrences of the symbol at a position in ``text``."""

        raw = await self.raw(VERB_HIGHLIGHT_REFS, (position_arg(line, character),), text)
        return decode(list[HighlightRef], raw, verb=VERB_HIGHLIGHT_REFS)

    async def ide_get_definition(self, text: str, line: int, character: int) -> list[DefinitionResult] | None:
        """Return definitions of the symbol at a position in ``text``."""

        raw = await self.raw(VERB_GET_DEFINITION, (position_arg(line, character),), text)
        return decode(list[DefinitionResult], raw, verb=VERB_GET_DEFINITION)

    async def auto_complete(self, text: str, offset: int) -> list[AutoCompleteItem] | None:
        """Return completion candidates for the cursor at character ``offset``."""

        raw = await self.raw(VERB_AUTO_COMPLETE, (), insert_auto_complete_token(text, offset))
        return decode(list[AutoCompleteItem], raw, verb=VERB_AUTO_COMPLETE)

    async def format(self, text: str, start: int, end: int) -> FormatResponse | None:
        """Return ``text`` reformatted between byte offsets ``start`` and ``end``."""

        raw = await self.raw(VERB_FORMAT, (str(start), str(end + FORMAT_END_OFFSET)), text)
        return decode(FormatResponse, raw, verb=VERB_FORMAT)


__all__ = [
    "AUTO_COMPLETE_TOKEN",
    "FORMAT_END_OFFSET",
    "HackClient",
    "VERB_CHECK",
    "VERB_FIND_REFS",
    "VERB_OUTLINE",
    "VERB_TYPE_AT_POS",
    "decode",
    "insert_auto_complete_token",
    "position_arg",
]
