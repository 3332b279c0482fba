# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fold, filter and deduplicate results reported by several backends."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import reduce
from typing import Final, cast

from .config import CALL_BY_VALUE_CODE, DEFINITIONS_PATH_MARKER, HackConfig
from .models import JsonValue

ERRORS_KEY: Final[str] = "errors"
MESSAGE_KEY: Final[str] = "message"
PASSED_KEY: Final[str] = "passed"


@dataclass(frozen=True, slots=True)
class MergeRules:
    """Codes and path markers whose findings never reach the user."""

    suppressed_codes: frozenset[int] = field(default_factory=lambda: frozenset({CALL_BY_VALUE_CODE}))
    excluded_path_markers: tuple[str, ...] = (DEFINITIONS_PATH_MARKER,)

    @classmethod
    def from_config(cls, config: HackConfig) -> MergeRules:
        """Return the rules configured for this workspace."""

        return cls(
            suppressed_codes=frozenset(config.suppressed_codes),
            excluded_path_markers=tuple(marker for marker in config.excluded_path_markers if marker),
        )


def error_list(value: JsonValue | None) -> list[JsonValue] | None:
    """Return the ``errors`` list of ``value`` or ``None`` when it has none."""

    if isinstance(value, Mapping):
        errors = value.get(ERRORS_KEY)
        if isinstance(errors, list):
            return errors
    return None


def fold_pair(accumulated: JsonValue | None, incoming: JsonValue | None) -> JsonValue | None:
    """Combine two backend answers.

    Args:
        accumulated: Result folded so far (``A``).
        incoming: Next result in dispatch order (``B``).

    Returns:
        JsonValue | None: ``A`` when neither carries errors and ``A`` is usable,
        whichever side carries errors when only one does, and otherwise ``B``'s
        top-level fields with ``B``'s errors followed by ``A``'s.
    """

    errors_a = error_list(accumulated)
    errors_b = error_list(incoming)
    if errors_a is None and errors_b is None:
        return accumulated if accumulated is not None else incoming
    if errors_b is None:
        return accumulated
    if errors_a is None:
        return incoming
    combined = dict(cast(Mapping[str, JsonValue], incoming))
    combined[ERRORS_KEY] = [*errors_b, *errors_a]
    return combined


def _primary_part(entry: JsonValue) -> Mapping[str, JsonValue] | None:
    if not isinstance(entry, Mapping):
        return None
    parts = entry.get(MESSAGE_KEY)
    if isinstance(parts, list) and parts and isinstance(parts[0], Mapping):
        return cast(Mapping[str, JsonValue], parts[0])
    return None


def is_suppressed(entry: JsonValue, rules: MergeRules) -> bool:
    """Return ``True`` when ``entry`` matches a suppressed code or excluded path."""

    primary = _primary_part(entry)
    if primary is None:
        return False
    code = primary.get("code")
    if isinstance(code, int) and not isinstance(code, bool) and code in rules.suppressed_codes:
        return True
    path = primary.get("path")
    return isinstance(path, str) and any(marker in path for marker in rules.excluded_path_markers)


def filter_errors(entries: Iterable[JsonValue], rules: MergeRules) -> list[JsonValue]:
    """Drop suppressed entries wherever they appear in ``entries``."""

    return [entry for entry in entries if not is_suppressed(entry, rules)]


def serialize_entry(entry: JsonValue) -> str:
    """Return the canonical serialisation used to detect identical entries."""

    return json.dumps(entry, sort_keys=True, separators=(",", ":"))


def dedupe_errors(entries: Iterable[JsonValue]) -> list[JsonValue]:
    """Collapse identical entries, keeping the first occurrence of each."""

    seen: set[str] = set()
    unique: list[JsonValue] = []
    for entry in entries:
        key = serialize_entry(entry)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def merge_results(results: Sequence[JsonValue | None], rules: MergeRules | None = None) -> JsonValue | None:
    """Fold ``results`` in order, then filter and deduplicate the errors.

    Args:
        results: Backend answers in dispatch order; ``None`` marks a failed backend.
        rules: Suppression rules; defaults to :class:`MergeRules`.

    Returns:
        JsonValue | None: The merged answer, or ``None`` when no backend produced
        anything usable.
    """

    active = rules or MergeRules()
    merged = reduce(fold_pair, results, None)
    errors = error_list(merged)
    if errors is None:
        return merged
    finalized = dict(cast(Mapping[str, JsonValue], merged))
    finalized[ERRORS_KEY] = dedupe_errors(filter_errors(errors, active))
    if finalized.get(PASSED_KEY) is True and finalized[ERRORS_KEY]:
        finalized[PASSED_KEY] = False
    return finalized


__all__ = [
    "ERRORS_KEY",
    "MergeRules",
    "dedupe_errors",
    "error_list",
    "filter_errors",
    "fold_pair",
    "is_suppressed",
    "merge_results",
    "serialize_entry",
]
