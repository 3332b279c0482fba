# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-run controller that publishes typecheck and soft diagnostics."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Final, Protocol, runtime_checkable

from .client import HackClient
from .config import HackConfig
from .models import CheckResult, OpenDocument, OutlineSymbol, Severity
from .paths import IdentityPathMapper, PathMapper, mapper_from_config
from .translate import DiagnosticEntry, DiagnosticMap, Range, translate

LOGGER = logging.getLogger(__name__)

SOFT_SOURCE: Final[str] = "Hack (Custom)"
UNREFERENCED_MESSAGE: Final[str] = "Reference not found in Typechecked code."
FUNCTION_KIND: Final[str] = "function"


@runtime_checkable
class DiagnosticCollection(Protocol):
    """Presentation collaborator; the session never reads diagnostics back."""

    def clear(self) -> None:
        """Remove every published diagnostic."""
        ...

    def set(self, path: str, diagnostics: Sequence[DiagnosticEntry]) -> None:
        """Replace the diagnostics published for ``path``."""
        ...


class InMemoryDiagnosticCollection:
    """Diagnostic collection backed by a dictionary."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, list[DiagnosticEntry]] = {}

    def clear(self) -> None:
        self._entries.clear()

    def set(self, path: str, diagnostics: Sequence[DiagnosticEntry]) -> None:
        self._entries[path] = list(diagnostics)

    def snapshot(self) -> DiagnosticMap:
        """Return a copy of the published diagnostics."""

        return {path: list(entries) for path, entries in self._entries.items()}

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())


class SessionState(str, Enum):
    """Lifecycle of the most recent run."""

    IDLE = "idle"
    RUNNING = "running"
    PUBLISHED = "published"


class TypecheckSession:
    """Run a full check, then replace the published diagnostics.

    Runs triggered while another is still in flight are not serialised; each
    proceeds on its own and whichever publishes last wins. ``guard_stale_runs``
    makes a run that has been superseded skip its publish step instead.
    """

    def __init__(
        self,
        client: HackClient,
        diagnostics: DiagnosticCollection,
        soft_diagnostics: DiagnosticCollection | None = None,
        *,
        path_mapper: PathMapper | None = None,
        guard_stale_runs: bool = False,
    ) -> None:
        self._client = client
        self._diagnostics = diagnostics
        self._soft_diagnostics = soft_diagnostics
        self._path_mapper = path_mapper or IdentityPathMapper()
        self._guard_stale_runs = guard_stale_runs
        self._sequence = 0
        self._state = SessionState.IDLE
        self._last_result: CheckResult | None = None

    @classmethod
    def from_config(
        cls,
        config: HackConfig,
        client: HackClient,
        diagnostics: DiagnosticCollection,
        soft_diagnostics: DiagnosticCollection | None = None,
    ) -> TypecheckSession:
        """Build a session honouring the configured path mapping and stale-run guard."""

        return cls(
            client,
            diagnostics,
            soft_diagnostics,
            path_mapper=mapper_from_config(config),
            guard_stale_runs=config.guard_stale_runs,
        )

    @property
    def state(self) -> SessionState:
        """Return the state of the most recently started run."""

        return self._state

    @property
    def last_result(self) -> CheckResult | None:
        """Return the check result of the most recently published run; ``None`` means unknown."""

        return self._last_result

    @property
    def sequence(self) -> int:
        """Return the number of runs started so far."""

        return self._sequence

    async def run(self, document: OpenDocument | None = None) -> DiagnosticMap:
        """Check the project and publish the diagnostics.

        The primary collection is cleared before the check is awaited, so a slow
        run shows no stale diagnostics while it computes.

        Args:
            document: Open buffer for the soft pass; skipped when ``None``.

        Returns:
            DiagnosticMap: Diagnostics produced by this run, published or not.
        """

        self._sequence += 1
        run_id = self._sequence
        self._state = SessionState.RUNNING
        self._diagnostics.clear()

        result = await self._client.check()
        diagnostic_map = translate(result, self._path_mapper)

        if document is not None:
            await self.run_soft(document)

        if self._guard_stale_runs and run_id != self._sequence:
            LOGGER.debug("run %d superseded by run %d; not publishing", run_id, self._sequence)
            return diagnostic_map

        self._last_result = result
        for path, entries in diagnostic_map.items():
            self._diagnostics.set(path, entries)
        if run_id == self._sequence:
            self._state = SessionState.PUBLISHED
        return diagnostic_map

    async def run_soft(self, document: OpenDocument) -> list[DiagnosticEntry]:
        """Warn about functions in ``document`` that nothing references.

        Args:
            document: Open buffer to inspect.

        Returns:
            list[DiagnosticEntry]: Warnings published on the soft collection.
        """

        if self._soft_diagnostics is not None:
            self._soft_diagnostics.clear()
        symbols = await self._client.outline(document.text)
        if not symbols:
            return []

        warnings: list[DiagnosticEntry] = []
        for symbol in symbols:
            if symbol.kind != FUNCTION_KIND:
                continue
            position = symbol.position
            references = await self._client.ide_find_refs(document.text, position.line, position.char_start)
            if not references:
                warnings.append(unreferenced_warning(document, symbol))

        if warnings and self._soft_diagnostics is not None:
            self._soft_diagnostics.set(document.path, warnings)
        return warnings


def unreferenced_warning(document: OpenDocument, symbol: OutlineSymbol) -> DiagnosticEntry:
    """Return the soft warning for a function nobody references."""

    position = symbol.position
    return DiagnosticEntry(
        file_path=document.path,
        range=Range.from_tool(position.line, position.char_start, position.char_end),
        message=UNREFERENCED_MESSAGE,
        severity=Severity.WARNING,
        source=SOFT_SOURCE,
    )


__all__ = [
    "DiagnosticCollection",
    "InMemoryDiagnosticCollection",
    "SOFT_SOURCE",
    "SessionState",
    "TypecheckSession",
    "UNREFERENCED_MESSAGE",
    "unreferenced_warning",
]
