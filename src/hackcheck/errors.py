# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Failures surfaced to the controller when a session cannot start."""

from __future__ import annotations


class SessionStartError(RuntimeError):
    """Raised when analysis features must stay disabled for this session."""


class ProvisioningError(SessionStartError):
    """Raised when the backend container could not be started."""

    def __init__(self, container: str, stderr: str = "") -> None:
        super().__init__(f"starting hack container '{container}' failed")
        self.container = container
        self.stderr = stderr


class VersionIncompatibleError(SessionStartError):
    """Raised when the backend is missing or too old for the required capabilities."""


__all__ = ["ProvisioningError", "SessionStartError", "VersionIncompatibleError"]
