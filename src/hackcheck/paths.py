# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Map paths reported by the typechecker to paths the editor can open."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable

from .config import HackConfig


@runtime_checkable
class PathMapper(Protocol):
    """Pure lookup between tool-reported and editor-visible paths."""

    def to_editor(self, tool_path: str) -> str:
        """Return the editor path for ``tool_path``."""
        ...

    def to_tool(self, editor_path: str) -> str:
        """Return the typechecker path for ``editor_path``."""
        ...


class IdentityPathMapper:
    """Used when the typechecker and the editor share a filesystem layout."""

    def to_editor(self, tool_path: str) -> str:
        return tool_path

    def to_tool(self, editor_path: str) -> str:
        return editor_path


def _rebase(path: str, source_root: PurePosixPath, target_root: PurePosixPath) -> str:
    candidate = PurePosixPath(path)
    if candidate == source_root or candidate.is_relative_to(source_root):
        return str(target_root / candidate.relative_to(source_root))
    return path


class PrefixPathMapper:
    """Swap a root prefix, e.g. a container mount point for the host checkout.

    Paths outside the configured root pass through unchanged.
    """

    def __init__(self, tool_root: str, editor_root: str) -> None:
        self._tool_root = PurePosixPath(tool_root)
        self._editor_root = PurePosixPath(editor_root)

    def to_editor(self, tool_path: str) -> str:
        return _rebase(tool_path, self._tool_root, self._editor_root)

    def to_tool(self, editor_path: str) -> str:
        return _rebase(editor_path, self._editor_root, self._tool_root)


def mapper_from_config(config: HackConfig) -> PathMapper:
    """Return a prefix mapper when both roots are configured, else the identity mapper."""

    if config.tool_root and config.editor_root:
        return PrefixPathMapper(config.tool_root, config.editor_root)
    return IdentityPathMapper()


__all__ = ["IdentityPathMapper", "PathMapper", "PrefixPathMapper", "mapper_from_config"]
