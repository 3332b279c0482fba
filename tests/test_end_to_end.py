# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""End-to-end runs through real child processes standing in for ``hh_client``."""

from __future__ import annotations

import json
import sys
import time

import pytest

from hackcheck.client import HackClient
from hackcheck.dispatch import Dispatcher
from hackcheck.merge import MergeRules
from hackcheck.models import BackendTarget, JsonValue
from hackcheck.process import ProcessInvoker
from hackcheck.registry import BackendRegistry
from hackcheck.session import InMemoryDiagnosticCollection, TypecheckSession

WORKSPACE = "/srv/www"

ENTRY: dict[str, JsonValue] = {
    "message": [
        {"descr": "Invalid argument", "path": "/srv/www/src/a.php", "line": 5, "start": 3, "end": 7, "code": 4110},
    ],
}


def _backend(name: str, payload: JsonValue, *, exit_code: int = 0, delay: float = 0.0) -> BackendTarget:
    script = (
        "import sys, time\n"
        f"time.sleep({delay})\n"
        f"sys.stdout.write({json.dumps(json.dumps(payload))})\n"
        f"sys.exit({exit_code})\n"
    )
    return BackendTarget(name=name, executable=sys.executable, arg_prefix=("-c", script), workspace=WORKSPACE)


def _client(*targets: BackendTarget) -> HackClient:
    registry = BackendRegistry(targets, pinned_verbs=("--type-at-pos",))
    return HackClient(Dispatcher(registry, ProcessInvoker(), MergeRules()), WORKSPACE)


@pytest.mark.asyncio
async def test_identical_errors_collapse_to_one() -> None:
    report = {"passed": False, "errors": [ENTRY]}
    client = _client(_backend("one", report, exit_code=2), _backend("two", report, exit_code=2))

    result = await client.check()

    assert result is not None
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_failed_backend_does_not_hide_passing_one() -> None:
    client = _client(
        _backend("broken", {"passed": False, "errors": [ENTRY]}, exit_code=1),
        _backend("healthy", {"passed": True, "errors": []}),
    )

    merged = await client.raw("check")

    assert merged == {"passed": True, "errors": []}


@pytest.mark.asyncio
async def test_pinned_verb_uses_single_backend() -> None:
    client = _client(_backend("old", {"type": "int"}), _backend("new", {"type": "string"}))

    assert await client.type_at_pos("/srv/www/src/a.php", 1, 1) == "string"
    assert len(client.dispatcher.registry.select("--type-at-pos")) == 1


@pytest.mark.asyncio
async def test_dispatch_waits_for_slow_backend_and_keeps_order() -> None:
    first = {"passed": False, "errors": [ENTRY]}
    second_entry = {"message": [{**ENTRY["message"][0], "line": 9}]}
    second = {"passed": False, "errors": [second_entry]}
    client = _client(_backend("fast", first, exit_code=2, delay=0.01), _backend("slow", second, exit_code=2, delay=0.5))

    started = time.monotonic()
    merged = await client.raw("check")
    elapsed = time.monotonic() - started

    assert elapsed >= 0.5
    assert merged["errors"] == [second_entry, ENTRY]


@pytest.mark.asyncio
async def test_session_publishes_translated_diagnostics() -> None:
    report = {"passed": False, "errors": [ENTRY]}
    client = _client(_backend("one", report, exit_code=2), _backend("two", None, exit_code=1))
    collection = InMemoryDiagnosticCollection("hack")

    await TypecheckSession(client, collection).run()

    (diagnostic,) = collection.snapshot()["/srv/www/src/a.php"]
    assert (diagnostic.range.start.line, diagnostic.range.start.character) == (4, 2)
    assert (diagnostic.range.end.line, diagnostic.range.end.character) == (4, 7)
    assert diagnostic.message == "Invalid argument [4110]"
