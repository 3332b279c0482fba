# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Logging setup and the status lines printed by the command line."""

from __future__ import annotations

import logging
from typing import Final

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

LOGGER_NAME: Final[str] = "hackcheck"


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Attach a Rich handler writing backend failures to stderr.

    Library modules only call :func:`logging.getLogger`; the handler is installed
    by the entry point so embedding applications keep control of the channel.

    Args:
        verbose: Emit ``DEBUG`` records, including every dispatched query, when
            ``True``; ``WARNING`` and above otherwise.

    Returns:
        logging.Logger: The configured package logger.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False, markup=False))
    return logger


class Reporter:
    """Print one-line outcomes of a command: backend answers, findings, startup failures."""

    def __init__(self, console: Console | None = None, *, use_emoji: bool = True) -> None:
        self.console = console or Console(highlight=False, soft_wrap=True)
        self._use_emoji = use_emoji

    def _line(self, icon: str, msg: str, style: str) -> None:
        prefix = f"{icon} " if self._use_emoji else ""
        self.console.print(Text(f"{prefix}{msg}", style=style))

    def info(self, msg: str) -> None:
        self._line("ℹ️", msg, "cyan")

    def ok(self, msg: str) -> None:
        self._line("✅", msg, "green")

    def warn(self, msg: str) -> None:
        self._line("⚠️", msg, "yellow")

    def fail(self, msg: str) -> None:
        self._line("❌", msg, "red")

    def section(self, title: str) -> None:
        """Separate a block of tables, e.g. soft diagnostics after the check results."""

        self.console.rule(title)


__all__ = ["LOGGER_NAME", "Reporter", "configure_logging"]
