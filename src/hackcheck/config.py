# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration model shared by the registry, invoker and session."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

ENV_PREFIX: Final[str] = "HACK_"
DEFAULT_MAX_OUTPUT_BYTES: Final[int] = 1024 * 1024 * 1024
CALL_BY_VALUE_CODE: Final[int] = 4168
DEFINITIONS_PATH_MARKER: Final[str] = "/z_hack_definitions/"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off", ""})


class ConfigError(Exception):
    """Raised when configuration input is invalid."""


class HackConfig(BaseModel):
    """Explicit configuration value handed to every component.

    Attributes:
        workspace: Project root passed to ``hh_client`` after ``--json``.
        use_docker: Route every call through ``docker exec`` into the
            workspace containers.
        docker_executable: Executable used to reach the containers.
        client_path: ``hh_client`` executable name or path.
        container_prefix: Prefix joined to the workspace hash to name containers.
        container_suffixes: One backend per suffix, in dispatch order.
        pinned_verbs: Verbs answered by exactly one backend.
        max_output_bytes: Ceiling applied to each captured stream.
        success_exit_codes: Exit codes meaning the client ran cleanly.
        diagnostic_exit_codes: Exit codes meaning the client ran and found errors.
        suppressed_codes: Error codes dropped from merged results.
        excluded_path_markers: Path fragments whose errors are dropped.
        provision_script: Bootstrap script that starts the backend container.
        min_api_version: Lowest ``api_version`` accepted at startup.
        guard_stale_runs: Skip publishing results of superseded runs.
        tool_root: Workspace root as seen by the typechecker.
        editor_root: Workspace root as seen by the editor.
    """

    model_config = ConfigDict(validate_assignment=True)

    workspace: str = ""
    use_docker: bool = True
    docker_executable: str = "docker"
    client_path: str = "hh_client"
    container_prefix: str = "hack_"
    container_suffixes: tuple[str, ...] = ("", "_2")
    pinned_verbs: tuple[str, ...] = ("--type-at-pos",)
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)
    success_exit_codes: tuple[int, ...] = (0,)
    diagnostic_exit_codes: tuple[int, ...] = (2,)
    suppressed_codes: frozenset[int] = frozenset({CALL_BY_VALUE_CODE})
    excluded_path_markers: tuple[str, ...] = (DEFINITIONS_PATH_MARKER,)
    provision_script: Path | None = None
    min_api_version: int = 1
    guard_stale_runs: bool = False
    tool_root: str | None = None
    editor_root: str | None = None

    @field_validator("container_suffixes", "pinned_verbs", "excluded_path_markers", mode="before")
    @classmethod
    def _coerce_strings(cls, value: object) -> object:
        """Accept comma separated strings for tuple-of-string fields."""

        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(","))
        return value

    @field_validator("success_exit_codes", "diagnostic_exit_codes", "suppressed_codes", mode="before")
    @classmethod
    def _coerce_codes(cls, value: object) -> object:
        """Accept comma separated strings and single integers for code collections."""

        if isinstance(value, int):
            return (value,)
        if isinstance(value, str):
            return tuple(int(part) for part in value.split(",") if part.strip())
        return value

    @model_validator(mode="after")
    def _check_suffixes(self) -> HackConfig:
        """Reject configurations that would address the same backend twice."""

        if not self.container_suffixes:
            raise ValueError("at least one container suffix is required")
        if len(set(self.container_suffixes)) != len(self.container_suffixes):
            raise ValueError("container suffixes must be unique")
        return self


_ENV_FIELDS: Final[dict[str, str]] = {
    "WORKSPACE": "workspace",
    "USE_DOCKER": "use_docker",
    "DOCKER": "docker_executable",
    "CLIENT_PATH": "client_path",
    "CONTAINER_PREFIX": "container_prefix",
    "CONTAINER_SUFFIXES": "container_suffixes",
    "PINNED_VERBS": "pinned_verbs",
    "MAX_OUTPUT_BYTES": "max_output_bytes",
    "SUPPRESSED_CODES": "suppressed_codes",
    "EXCLUDED_PATHS": "excluded_path_markers",
    "PROVISION_SCRIPT": "provision_script",
    "MIN_API_VERSION": "min_api_version",
    "GUARD_STALE_RUNS": "guard_stale_runs",
    "TOOL_ROOT": "tool_root",
    "EDITOR_ROOT": "editor_root",
}

_BOOL_FIELDS: Final[frozenset[str]] = frozenset({"use_docker", "guard_stale_runs"})


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    """Return configuration overrides read from ``HACK_*`` variables.

    Args:
        env: Environment mapping to inspect.

    Returns:
        dict[str, object]: Field overrides keyed by :class:`HackConfig` field name.

    Raises:
        ConfigError: If a boolean variable holds an unrecognised value.
    """

    overrides: dict[str, object] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw is None:
            continue
        overrides[field_name] = _parse_bool(suffix, raw) if field_name in _BOOL_FIELDS else raw
    return overrides


def load_config(
    workspace: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> HackConfig:
    """Build the configuration once at startup.

    Precedence, lowest first: model defaults, ``HACK_*`` environment variables,
    the explicit ``workspace`` argument, then ``overrides``. The workspace falls
    back to the current directory when nothing else names one.

    Args:
        workspace: Optional project root supplied by the caller.
        env: Environment mapping; defaults to :data:`os.environ`.
        overrides: Additional field values applied last.

    Returns:
        HackConfig: Validated configuration.

    Raises:
        ConfigError: If any value fails validation.
    """

    data = env_overrides(os.environ if env is None else env)
    if workspace is not None:
        data["workspace"] = str(workspace)
    data.update(overrides or {})
    if not data.get("workspace"):
        data["workspace"] = str(Path.cwd())
    try:
        return HackConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def split_command(command: str | Sequence[str]) -> list[str]:
    """Return ``command`` as an argument list, splitting on whitespace when needed."""

    if isinstance(command, str):
        return command.split()
    return list(command)


__all__ = [
    "CALL_BY_VALUE_CODE",
    "DEFAULT_MAX_OUTPUT_BYTES",
    "DEFINITIONS_PATH_MARKER",
    "ConfigError",
    "HackConfig",
    "env_overrides",
    "load_config",
    "split_command",
]
