# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Session start: make sure a backend exists and speaks a supported version."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from .client import HackClient
from .config import HackConfig
from .errors import ProvisioningError, VersionIncompatibleError
from .models import VersionInfo
from .registry import container_name

LOGGER = logging.getLogger(__name__)


class ContainerProvisioner:
    """Start the workspace container through an external bootstrap script.

    The script receives the workspace path and the derived container name. When
    no script is configured the container is assumed to be managed elsewhere and
    only its name is derived.
    """

    def __init__(self, workspace: str, *, script: Path | None = None, prefix: str = "hack_", shell: str = "bash") -> None:
        self._workspace = workspace
        self._script = script
        self._prefix = prefix
        self._shell = shell

    @classmethod
    def from_config(cls, config: HackConfig) -> ContainerProvisioner:
        """Build a provisioner for the configured workspace and script."""

        return cls(config.workspace, script=config.provision_script, prefix=config.container_prefix)

    @property
    def container(self) -> str:
        """Return the name of the container this provisioner manages."""

        return container_name(self._workspace, prefix=self._prefix)

    async def ensure(self) -> str:
        """Run the bootstrap script and return the container name.

        Raises:
            ProvisioningError: If the script cannot be started or exits non-zero.
        """

        if self._script is None:
            return self.container
        try:
            process = await asyncio.create_subprocess_exec(
                self._shell,
                str(self._script),
                self._workspace,
                self.container,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProvisioningError(self.container, str(exc)) from exc
        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise ProvisioningError(self.container, stderr.decode("utf-8", errors="replace"))
        LOGGER.debug("container %s is ready", self.container)
        return self.container


@dataclass(frozen=True, slots=True)
class ActivationResult:
    """What a successful session start established."""

    container: str
    version: VersionInfo


async def activate(config: HackConfig, client: HackClient, provisioner: ContainerProvisioner | None = None) -> ActivationResult:
    """Provision the backend and verify its version, once per session.

    Args:
        config: Session configuration.
        client: Client used for the version probe.
        provisioner: Container provisioner; built from ``config`` when omitted.

    Returns:
        ActivationResult: Container name and the reported version.

    Raises:
        ProvisioningError: If the backend environment could not be started.
        VersionIncompatibleError: If no backend reports a version, or the
            reported ``api_version`` is below ``config.min_api_version``.
    """

    active_provisioner = provisioner or ContainerProvisioner.from_config(config)
    container = await active_provisioner.ensure()
    version = await client.version()
    if version is None:
        raise VersionIncompatibleError(
            f"Invalid hh_client executable: '{config.client_path}'. Please ensure that HHVM is correctly "
            "installed or configure an alternate hh_client path."
        )
    if version.api_version < config.min_api_version:
        raise VersionIncompatibleError(
            f"hh_client api_version {version.api_version} is older than the required {config.min_api_version}"
        )
    return ActivationResult(container=container, version=version)


__all__ = ["ActivationResult", "ContainerProvisioner", "activate"]
