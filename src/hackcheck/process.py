# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run ``hh_client`` once and turn its output into a JSON value or nothing."""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
from collections.abc import Sequence
from enum import Enum
from typing import Final, cast

from pydantic import BaseModel, ConfigDict, field_validator

from .config import DEFAULT_MAX_OUTPUT_BYTES, HackConfig
from .models import BackendTarget, JsonValue

LOGGER = logging.getLogger(__name__)

JSON_FLAG: Final[str] = "--json"
_CHUNK_SIZE: Final[int] = 64 * 1024


class ExitCategory(str, Enum):
    """High level interpretation of an ``hh_client`` exit status."""

    SUCCESS = "success"
    DIAGNOSTIC = "diagnostic"
    TOOL_FAILURE = "tool_failure"


class ExitCodes(BaseModel):
    """Exit codes the client uses to say it ran fine.

    ``0`` means a clean run and ``2`` means the run completed and reported type
    errors. Every other status, including termination by a signal, is a
    backend failure.
    """

    model_config = ConfigDict(frozen=True)

    success: tuple[int, ...] = (0,)
    diagnostic: tuple[int, ...] = (2,)

    @field_validator("success", "diagnostic", mode="before")
    @classmethod
    def _coerce_codes(cls, value: Sequence[int | str] | int | str | None) -> tuple[int, ...]:
        """Return validated integer exit codes from ``value``.

        Args:
            value: Raw exit code sequence supplied for a model field.

        Returns:
            tuple[int, ...]: Normalised integer exit codes.

        Raises:
            TypeError: If ``value`` is neither ``None`` nor an integer sequence.
        """

        if value is None:
            return ()
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(int(item) for item in value)
        if isinstance(value, (int, str)):
            return (int(value),)
        raise TypeError("exit code collections must contain integers")

    def classify(self, returncode: int | None) -> ExitCategory:
        """Return the category for ``returncode``."""

        if returncode is None:
            return ExitCategory.TOOL_FAILURE
        if returncode in self.success:
            return ExitCategory.SUCCESS
        if returncode in self.diagnostic:
            return ExitCategory.DIAGNOSTIC
        return ExitCategory.TOOL_FAILURE


class OutputLimitExceeded(RuntimeError):
    """Raised internally when a captured stream grows past the ceiling."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"output exceeded {limit} bytes")
        self.limit = limit


def build_argv(target: BackendTarget, verb: str, extra_args: Sequence[str] = ()) -> list[str]:
    """Return the full command line for one call against ``target``.

    Args:
        target: Backend receiving the call.
        verb: Query verb such as ``check`` or ``--outline``.
        extra_args: Arguments following the verb.

    Returns:
        list[str]: Executable, prefix, verb, arguments, ``--json`` and the workspace.
    """

    return [target.executable, *target.arg_prefix, verb, *extra_args, JSON_FLAG, target.workspace]


def parse_output(stdout: str, stderr: str) -> JsonValue | None:
    """Parse the JSON payload, reading stderr when stdout is empty.

    ``hh_client check`` writes its report to stderr by default, so an empty
    stdout is not an error.

    Raises:
        json.JSONDecodeError: If the chosen stream is not valid JSON.
    """

    payload = stdout if stdout.strip() else stderr
    return cast(JsonValue, json.loads(payload))


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        LOGGER.debug("hh_client pid %s exited before it could be killed", process.pid)


async def _read_capped(process: asyncio.subprocess.Process, stream: asyncio.StreamReader | None, limit: int) -> bytes:
    if stream is None:
        return b""
    buffer = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return bytes(buffer)
        buffer.extend(chunk)
        if len(buffer) > limit:
            # The sibling reader only sees EOF once the child is gone.
            _kill(process)
            raise OutputLimitExceeded(limit)


async def _feed_stdin(process: asyncio.subprocess.Process, data: bytes | None) -> None:
    if data is None or process.stdin is None:
        return
    try:
        process.stdin.write(data)
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        LOGGER.debug("hh_client closed its input before reading %d bytes", len(data))
    finally:
        process.stdin.close()


class ProcessInvoker:
    """Owns one child process per call; never raises to its caller."""

    def __init__(
        self,
        *,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        exit_codes: ExitCodes | None = None,
    ) -> None:
        if max_output_bytes <= 0:
            raise ValueError("max_output_bytes must be positive")
        self._max_output_bytes = max_output_bytes
        self._exit_codes = exit_codes or ExitCodes()

    @classmethod
    def from_config(cls, config: HackConfig) -> ProcessInvoker:
        """Build an invoker honouring the configured ceiling and exit codes."""

        return cls(
            max_output_bytes=config.max_output_bytes,
            exit_codes=ExitCodes(success=config.success_exit_codes, diagnostic=config.diagnostic_exit_codes),
        )

    @property
    def exit_codes(self) -> ExitCodes:
        """Return the exit code policy."""

        return self._exit_codes

    async def invoke(
        self,
        target: BackendTarget,
        verb: str,
        extra_args: Sequence[str] = (),
        stdin: str | None = None,
    ) -> JsonValue | None:
        """Run one query against ``target``.

        Args:
            target: Backend receiving the call.
            verb: Query verb.
            extra_args: Arguments following the verb.
            stdin: Text written to the client's input stream, if any.

        Returns:
            JsonValue | None: Parsed output, or ``None`` when the backend failed,
            exceeded the output ceiling or printed something that is not JSON.
        """

        argv = build_argv(target, verb, extra_args)
        command = shlex.join(argv)
        try:
            input_bytes = stdin.encode("utf-8") if stdin else None
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input_bytes is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            LOGGER.error("Hack: hh_client execution error on %s: %s", target.name, exc)
            return None

        outcomes = await asyncio.gather(
            _feed_stdin(process, input_bytes),
            _read_capped(process, process.stdout, self._max_output_bytes),
            _read_capped(process, process.stderr, self._max_output_bytes),
            return_exceptions=True,
        )
        failure = next((item for item in outcomes if isinstance(item, BaseException)), None)
        if failure is not None:
            _kill(process)
            await process.wait()
            LOGGER.error("Hack: hh_client execution error on %s: %s (%s)", target.name, failure, command)
            return None

        returncode = await process.wait()
        stdout_bytes = cast(bytes, outcomes[1])
        stderr_bytes = cast(bytes, outcomes[2])
        category = self._exit_codes.classify(returncode)
        if category is ExitCategory.TOOL_FAILURE:
            stderr_tail = stderr_bytes.decode("utf-8", errors="replace").strip().splitlines()[-1:]
            LOGGER.error(
                "Hack: hh_client execution error on %s: exit %s (%s)%s",
                target.name,
                returncode,
                command,
                f" stderr: {stderr_tail[0]}" if stderr_tail else "",
            )
            return None

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        try:
            parsed = parse_output(stdout, stderr)
        except json.JSONDecodeError as exc:
            LOGGER.error("Hack: hh_client output error on %s: %s", target.name, exc)
            return None
        LOGGER.debug("%s answered %s with exit %s", target.name, verb, returncode)
        return parsed


__all__ = [
    "JSON_FLAG",
    "ExitCategory",
    "ExitCodes",
    "OutputLimitExceeded",
    "ProcessInvoker",
    "build_argv",
    "parse_output",
]
