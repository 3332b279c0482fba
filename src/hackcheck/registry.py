# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Backend targets derived from the workspace and per-verb routing."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence

from .config import HackConfig, split_command
from .models import BackendTarget


def container_name(workspace: str, *, prefix: str = "hack_") -> str:
    """Return the container name owned by ``workspace``.

    Args:
        workspace: Workspace path the container serves.
        prefix: Name prefix shared by all workspace containers.

    Returns:
        str: ``prefix`` followed by the hex MD5 digest of ``workspace``.
    """

    # Not a security boundary; the digest only needs to be stable per path.
    digest = hashlib.md5(workspace.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{prefix}{digest}"


def docker_target(config: HackConfig, suffix: str) -> BackendTarget:
    """Return the target that runs ``hh_client`` inside ``<container><suffix>``."""

    name = f"{container_name(config.workspace, prefix=config.container_prefix)}{suffix}"
    return BackendTarget(
        name=name,
        executable=config.docker_executable,
        arg_prefix=("exec", "-i", name, *split_command(config.client_path)),
        workspace=config.workspace,
    )


def local_target(config: HackConfig) -> BackendTarget:
    """Return a target that runs the configured client directly on the host."""

    executable, *prefix = split_command(config.client_path)
    return BackendTarget(
        name=f"{container_name(config.workspace, prefix=config.container_prefix)}_local",
        executable=executable,
        arg_prefix=tuple(prefix),
        workspace=config.workspace,
    )


class BackendRegistry:
    """Hold the default targets and pin single-answer verbs to one of them.

    Position based queries such as ``--type-at-pos`` produce one answer; merging
    two of them is meaningless, so those verbs go to the last default target,
    the most recently started instance.
    """

    def __init__(self, targets: Sequence[BackendTarget], *, pinned_verbs: Iterable[str] = ()) -> None:
        if not targets:
            raise ValueError("a backend registry needs at least one target")
        names = [target.name for target in targets]
        if len(set(names)) != len(names):
            raise ValueError(f"backend target names collide: {names}")
        self._targets = tuple(targets)
        self._pinned_verbs = frozenset(pinned_verbs)

    @classmethod
    def from_config(cls, config: HackConfig) -> BackendRegistry:
        """Build the registry described by ``config``."""

        if config.use_docker:
            targets = [docker_target(config, suffix) for suffix in config.container_suffixes]
        else:
            targets = [local_target(config)]
        return cls(targets, pinned_verbs=config.pinned_verbs)

    @property
    def targets(self) -> tuple[BackendTarget, ...]:
        """Return the default targets in dispatch order."""

        return self._targets

    @property
    def pinned_verbs(self) -> frozenset[str]:
        """Return the verbs answered by a single backend."""

        return self._pinned_verbs

    def select(self, verb: str) -> tuple[BackendTarget, ...]:
        """Return the targets that should receive ``verb``, in dispatch order."""

        if verb in self._pinned_verbs:
            return (self._targets[-1],)
        return self._targets


__all__ = ["BackendRegistry", "container_name", "docker_target", "local_target"]
