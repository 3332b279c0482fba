# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the typecheck session lifecycle and the soft pass."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from hackcheck.client import HackClient
from hackcheck.config import HackConfig
from hackcheck.models import JsonValue, OpenDocument, Severity
from hackcheck.paths import PrefixPathMapper
from hackcheck.session import (
    SOFT_SOURCE,
    UNREFERENCED_MESSAGE,
    DiagnosticCollection,
    InMemoryDiagnosticCollection,
    SessionState,
    TypecheckSession,
)
from hackcheck.translate import DiagnosticEntry

MakeClient = Callable[..., tuple[HackClient, Any]]
MakeError = Callable[..., dict[str, JsonValue]]

DOCUMENT = OpenDocument(path="/srv/www/src/a.php", text="<?hh\n\nfunction used(): void {}\nfunction unused(): void {}\n")


class RecordingCollection(InMemoryDiagnosticCollection):
    """In-memory collection that also records the calls it receives."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.events: list[tuple[str, str | None]] = []

    def clear(self) -> None:
        self.events.append(("clear", None))
        super().clear()

    def set(self, path: str, diagnostics: Sequence[DiagnosticEntry]) -> None:
        self.events.append(("set", path))
        super().set(path, diagnostics)


def _symbol(name: str, line: int, kind: str = "function") -> dict[str, JsonValue]:
    return {"name": name, "kind": kind, "position": {"filename": "", "line": line, "char_start": 10, "char_end": 10 + len(name)}}


def _ide_answers(verb: str, args: tuple[str, ...], stdin: str | None) -> JsonValue:
    if verb == "--outline":
        return [_symbol("used", 3), _symbol("unused", 4), _symbol("Widget", 5, kind="class")]
    if verb == "--ide-find-refs":
        if args == ("3:10",):
            return [{"name": "used", "filename": "/srv/www/src/b.php", "line": 9, "char_start": 1, "char_end": 4}]
        return []
    return {"passed": True, "errors": []}


def test_in_memory_collection_satisfies_protocol() -> None:
    collection = InMemoryDiagnosticCollection("hack")

    assert isinstance(collection, DiagnosticCollection)
    assert len(collection) == 0


@pytest.mark.asyncio
async def test_clears_before_awaiting_check(make_client: MakeClient, make_error: MakeError) -> None:
    collection = RecordingCollection("hack")
    collection.set("/srv/www/stale.php", [])
    seen_during_check: list[list[tuple[str, str | None]]] = []

    def _check(verb: str, args: tuple[str, ...], stdin: str | None) -> JsonValue:
        seen_during_check.append(list(collection.events))
        return {"passed": False, "errors": [make_error()]}

    client, _ = make_client(_check, _check)
    session = TypecheckSession(client, collection)

    await session.run()

    assert seen_during_check[0][-1] == ("clear", None)
    assert collection.events[-1] == ("set", "/srv/www/src/a.php")
    assert list(collection.snapshot()) == ["/srv/www/src/a.php"]


@pytest.mark.asyncio
async def test_passed_check_leaves_collection_empty(make_client: MakeClient) -> None:
    collection = RecordingCollection("hack")
    client, _ = make_client({"passed": True, "errors": []}, {"passed": True, "errors": []})
    session = TypecheckSession(client, collection)

    diagnostics = await session.run()

    assert diagnostics == {}
    assert collection.events == [("clear", None)]
    assert session.state is SessionState.PUBLISHED
    assert session.last_result is not None and session.last_result.passed


@pytest.mark.asyncio
async def test_absent_check_publishes_nothing(make_client: MakeClient) -> None:
    collection = InMemoryDiagnosticCollection("hack")
    client, _ = make_client(None, RuntimeError("gone"))
    session = TypecheckSession(client, collection)

    assert await session.run() == {}
    assert session.last_result is None
    assert len(collection) == 0


@pytest.mark.asyncio
async def test_state_moves_through_running(make_client: MakeClient) -> None:
    states: list[SessionState] = []
    session: TypecheckSession | None = None

    def _check(verb: str, args: tuple[str, ...], stdin: str | None) -> JsonValue:
        assert session is not None
        states.append(session.state)
        return {"passed": True, "errors": []}

    client, _ = make_client(_check, _check)
    session = TypecheckSession(client, InMemoryDiagnosticCollection("hack"))

    assert session.state is SessionState.IDLE
    await session.run()

    assert states[0] is SessionState.RUNNING
    assert session.state is SessionState.PUBLISHED
    assert session.sequence == 1


@pytest.mark.asyncio
async def test_soft_pass_warns_about_unreferenced_functions(make_client: MakeClient) -> None:
    primary = InMemoryDiagnosticCollection("hack")
    soft = RecordingCollection("hack_soft")
    client, invoker = make_client(_ide_answers, _ide_answers)
    session = TypecheckSession(client, primary, soft)

    await session.run(DOCUMENT)

    (warning,) = soft.snapshot()[DOCUMENT.path]
    assert warning.message == UNREFERENCED_MESSAGE
    assert warning.severity is Severity.WARNING
    assert warning.source == SOFT_SOURCE
    assert warning.range.start.line == 3
    assert soft.events[0] == ("clear", None)
    refs_calls = {call.extra_args for call in invoker.calls if call.verb == "--ide-find-refs"}
    assert refs_calls == {("3:10",), ("4:10",)}
    assert all(call.stdin == DOCUMENT.text for call in invoker.calls if call.verb != "check")


@pytest.mark.asyncio
async def test_soft_pass_without_outline_only_clears(make_client: MakeClient) -> None:
    soft = RecordingCollection("hack_soft")
    client, _ = make_client(None, None)
    session = TypecheckSession(client, InMemoryDiagnosticCollection("hack"), soft)

    assert await session.run_soft(DOCUMENT) == []
    assert soft.events == [("clear", None)]


@pytest.mark.asyncio
async def test_paths_are_mapped_before_publishing(make_client: MakeClient, make_error: MakeError) -> None:
    collection = InMemoryDiagnosticCollection("hack")
    answer = {"passed": False, "errors": [make_error(path="/srv/www/src/a.php")]}
    client, _ = make_client(answer, answer)
    session = TypecheckSession(client, collection, path_mapper=PrefixPathMapper("/srv/www", "/home/dev/site"))

    await session.run()

    assert list(collection.snapshot()) == ["/home/dev/site/src/a.php"]


@pytest.mark.asyncio
async def test_malformed_entry_keeps_valid_diagnostics(make_client: MakeClient, make_error: MakeError) -> None:
    broken = {"message": [{"descr": "no code", "path": "/srv/www/src/b.php", "line": 1, "start": 1, "end": 2}]}
    report = {"passed": False, "errors": [make_error(), broken]}
    client, _ = make_client(report, report)
    collection = InMemoryDiagnosticCollection("hack")

    await TypecheckSession(client, collection).run()

    assert list(collection.snapshot()) == ["/srv/www/src/a.php"]
    assert len(collection) == 1


def _delayed_check(delays: list[float], answers: list[JsonValue]) -> Callable[..., Any]:
    async def _invoke(target: Any, verb: str, extra_args: Sequence[str] = (), stdin: str | None = None) -> JsonValue:
        delay, answer = delays.pop(0), answers.pop(0)
        await asyncio.sleep(delay)
        return answer

    return _invoke


@pytest.mark.asyncio
async def test_overlapping_runs_last_write_wins(
    make_client: MakeClient,
    make_error: MakeError,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    slow = {"passed": False, "errors": [make_error(path="/srv/www/slow.php")]}
    fast = {"passed": False, "errors": [make_error(path="/srv/www/fast.php")]}
    client, invoker = make_client(None, None)
    monkeypatch.setattr(invoker, "invoke", _delayed_check([0.2, 0.2, 0.0, 0.0], [slow, slow, fast, fast]))
    collection = InMemoryDiagnosticCollection("hack")
    session = TypecheckSession(client, collection)

    await asyncio.gather(session.run(), session.run())

    assert set(collection.snapshot()) == {"/srv/www/fast.php", "/srv/www/slow.php"}
    assert session.sequence == 2


@pytest.mark.asyncio
async def test_stale_guard_drops_superseded_run(
    make_client: MakeClient,
    make_error: MakeError,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    slow = {"passed": False, "errors": [make_error(path="/srv/www/slow.php")]}
    fast = {"passed": False, "errors": [make_error(path="/srv/www/fast.php")]}
    client, invoker = make_client(None, None)
    monkeypatch.setattr(invoker, "invoke", _delayed_check([0.2, 0.2, 0.0, 0.0], [slow, slow, fast, fast]))
    collection = InMemoryDiagnosticCollection("hack")
    session = TypecheckSession(client, collection, guard_stale_runs=True)

    first, second = await asyncio.gather(session.run(), session.run())

    assert list(first) == ["/srv/www/slow.php"]
    assert list(second) == ["/srv/www/fast.php"]
    assert list(collection.snapshot()) == ["/srv/www/fast.php"]
    assert session.state is SessionState.PUBLISHED


def test_from_config_reads_guard_and_mapping(make_client: MakeClient) -> None:
    client, _ = make_client(None, None)
    config = HackConfig(workspace="/srv/www", guard_stale_runs=True, tool_root="/srv/www", editor_root="/src")

    session = TypecheckSession.from_config(config, client, InMemoryDiagnosticCollection("hack"))

    assert session.state is SessionState.IDLE
    assert session.last_result is None


@pytest.mark.asyncio
async def test_stale_guard_keeps_newest_result(
    make_client: MakeClient,
    make_error: MakeError,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    failing = {"passed": False, "errors": [make_error(path="/srv/www/slow.php")]}
    passing = {"passed": True, "errors": []}
    client, invoker = make_client(None, None)
    monkeypatch.setattr(invoker, "invoke", _delayed_check([0.2, 0.2, 0.0, 0.0], [failing, failing, passing, passing]))
    collection = InMemoryDiagnosticCollection("hack")
    session = TypecheckSession(client, collection, guard_stale_runs=True)

    await asyncio.gather(session.run(), session.run())

    assert session.last_result is not None
    assert session.last_result.passed is True
    assert len(collection) == 0
