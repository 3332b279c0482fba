# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Send one query to every selected backend and merge the answers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from .config import HackConfig
from .merge import MergeRules, merge_results
from .models import BackendTarget, JsonValue, Query
from .process import ProcessInvoker
from .registry import BackendRegistry

LOGGER = logging.getLogger(__name__)


class Invoker(Protocol):
    """Anything able to run one query against one backend."""

    async def invoke(
        self,
        target: BackendTarget,
        verb: str,
        extra_args: Sequence[str] = (),
        stdin: str | None = None,
    ) -> JsonValue | None:
        """Return the parsed answer of ``target`` or ``None``."""
        ...


class Dispatcher:
    """Fan a query out to the registry's targets and fold the answers.

    Every call is awaited before folding, and answers are folded in the order
    the targets were dispatched, not the order they finished in, so merge
    priority does not depend on which backend is faster.
    """

    def __init__(self, registry: BackendRegistry, invoker: Invoker, rules: MergeRules | None = None) -> None:
        self._registry = registry
        self._invoker = invoker
        self._rules = rules or MergeRules()

    @classmethod
    def from_config(cls, config: HackConfig) -> Dispatcher:
        """Wire a registry, invoker and merge rules from ``config``."""

        return cls(
            BackendRegistry.from_config(config),
            ProcessInvoker.from_config(config),
            MergeRules.from_config(config),
        )

    @property
    def registry(self) -> BackendRegistry:
        """Return the backend registry."""

        return self._registry

    async def _ask(self, target: BackendTarget, query: Query) -> JsonValue | None:
        if target.workspace != query.workspace:
            LOGGER.error(
                "Hack: %s serves %s, not the queried workspace %s",
                target.name,
                target.workspace,
                query.workspace,
            )
            return None
        return await self._invoker.invoke(target, query.verb, query.extra_args, query.stdin)

    async def gather(self, query: Query) -> list[JsonValue | None]:
        """Return every selected backend's answer in dispatch order."""

        targets = self._registry.select(query.verb)
        LOGGER.debug("dispatching %s to %s", query.verb, ", ".join(target.name for target in targets))
        answers = await asyncio.gather(
            *(self._ask(target, query) for target in targets),
            return_exceptions=True,
        )
        results: list[JsonValue | None] = []
        for target, answer in zip(targets, answers, strict=True):
            if isinstance(answer, BaseException):
                LOGGER.error("Hack: %s failed on %s: %s", query.verb, target.name, answer)
                results.append(None)
                continue
            results.append(answer)
        return results

    async def run(self, query: Query) -> JsonValue | None:
        """Return the merged answer for ``query``, or ``None`` when every backend failed."""

        return merge_results(await self.gather(query), self._rules)


__all__ = ["Dispatcher", "Invoker"]
