# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import pytest

from hackcheck.client import HackClient
from hackcheck.config import HackConfig
from hackcheck.dispatch import Dispatcher
from hackcheck.merge import MergeRules
from hackcheck.models import BackendTarget, JsonValue
from hackcheck.registry import BackendRegistry

WORKSPACE = "/srv/www"

type Answer = JsonValue | BaseException | Callable[[str, tuple[str, ...], str | None], JsonValue]


@dataclass
class Call:
    target: str
    verb: str
    extra_args: tuple[str, ...]
    stdin: str | None


@dataclass
class FakeInvoker:
    """Answer queries per target, in registry order, with optional delays."""

    targets: Sequence[BackendTarget]
    answers: Sequence[Answer]
    delays: Sequence[float] = ()
    calls: list[Call] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)

    async def invoke(
        self,
        target: BackendTarget,
        verb: str,
        extra_args: Sequence[str] = (),
        stdin: str | None = None,
    ) -> JsonValue:
        index = [candidate.name for candidate in self.targets].index(target.name)
        self.calls.append(Call(target.name, verb, tuple(extra_args), stdin))
        if index < len(self.delays):
            await asyncio.sleep(self.delays[index])
        self.finished.append(target.name)
        answer = self.answers[index]
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return answer(verb, tuple(extra_args), stdin)
        return copy.deepcopy(answer)


@pytest.fixture
def config() -> HackConfig:
    """Return a two-backend configuration for a fixed workspace."""
    return HackConfig(workspace=WORKSPACE)


@pytest.fixture
def registry(config: HackConfig) -> BackendRegistry:
    return BackendRegistry.from_config(config)


@pytest.fixture
def make_client(registry: BackendRegistry) -> Callable[..., tuple[HackClient, FakeInvoker]]:
    """Return a factory building a client whose backends answer from a list."""

    def _factory(*answers: Answer, delays: Sequence[float] = ()) -> tuple[HackClient, FakeInvoker]:
        invoker = FakeInvoker(registry.targets, answers, delays)
        dispatcher = Dispatcher(registry, invoker, MergeRules())
        return HackClient(dispatcher, WORKSPACE), invoker

    return _factory


@pytest.fixture
def make_error() -> Callable[..., dict[str, JsonValue]]:
    """Return a builder for raw ``hh_client`` error entries."""

    def _factory(
        path: str = "/srv/www/src/a.php",
        line: int = 5,
        start: int = 3,
        end: int = 7,
        code: int = 4110,
        descr: str = "Invalid argument",
        *extra_parts: dict[str, JsonValue],
    ) -> dict[str, JsonValue]:
        primary: dict[str, JsonValue] = {
            "descr": descr,
            "path": path,
            "line": line,
            "start": start,
            "end": end,
            "code": code,
        }
        return {"message": [primary, *extra_parts]}

    return _factory
