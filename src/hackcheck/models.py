# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data models for backend targets, queries and ``hh_client`` responses."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)

type JsonScalar = str | int | float | bool | None
type JsonValue = JsonScalar | list[JsonValue] | dict[str, JsonValue]


class Severity(str, Enum):
    """Severity levels attached to published diagnostics."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    NOTE = "note"


class BackendTarget(BaseModel):
    """One independently running ``hh_client`` endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    executable: str
    arg_prefix: tuple[str, ...] = Field(default_factory=tuple)
    workspace: str

    @field_validator("arg_prefix", mode="before")
    @classmethod
    def _coerce_prefix(cls, value: object) -> object:
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        return value


class Query(BaseModel):
    """A logical request sent to every selected backend."""

    model_config = ConfigDict(frozen=True)

    verb: str
    extra_args: tuple[str, ...] = Field(default_factory=tuple)
    stdin: str | None = None
    workspace: str


class MessagePart(BaseModel):
    """One segment of a typechecker error; 1-indexed line and columns."""

    model_config = ConfigDict(extra="ignore")

    path: str
    line: int
    start: int
    end: int
    descr: str
    code: int


class ErrorEntry(BaseModel):
    """A reported finding; the first message part carries the canonical location."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_parts: list[MessagePart] = Field(default_factory=list, alias="message")

    @property
    def primary(self) -> MessagePart | None:
        """Return the first message part, if any."""

        return self.message_parts[0] if self.message_parts else None


class CheckResult(BaseModel):
    """Decoded ``hh_client check`` response."""

    model_config = ConfigDict(extra="ignore")

    passed: bool
    errors: list[ErrorEntry] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def _valid_entries(cls, value: object) -> object:
        """Drop entries that do not decode so the rest of the report survives."""

        if value is None:
            return []
        if not isinstance(value, list):
            return value
        entries: list[ErrorEntry] = []
        for raw in value:
            try:
                entries.append(ErrorEntry.model_validate(raw))
            except ValidationError as exc:
                LOGGER.warning("Hack: skipping malformed check error: %s", exc.errors(include_url=False)[:3])
        return entries

    def effective_errors(self) -> list[ErrorEntry]:
        """Return the errors, treating a passed check as error free."""

        return [] if self.passed else self.errors


class VersionInfo(BaseModel):
    """Decoded ``--version`` response."""

    model_config = ConfigDict(extra="ignore")

    commit: str = ""
    commit_time: int = 0
    api_version: int = 0


class ColorSegment(BaseModel):
    """A run of text tagged with its typechecker coverage colour."""

    model_config = ConfigDict(extra="ignore")

    color: str
    text: str


class TypeAtPosResponse(BaseModel):
    """Decoded ``--type-at-pos`` response."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None


class SymbolPosition(BaseModel):
    """Location of a symbol reported by outline and definition queries."""

    model_config = ConfigDict(extra="ignore")

    filename: str = ""
    line: int
    char_start: int
    char_end: int


class OutlineSymbol(BaseModel):
    """An entry of the ``--outline`` response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    kind: str
    position: SymbolPosition
    modifiers: list[str] = Field(default_factory=list)
    children: list[OutlineSymbol] | None = None


class SearchResult(BaseModel):
    """An entry of the ``--search`` response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    filename: str
    desc: str = ""
    line: int
    char_start: int
    char_end: int
    scope: str = ""


class FindRefsResult(BaseModel):
    """An entry of the ``--ide-find-refs`` response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    filename: str
    line: int
    char_start: int
    char_end: int


class HighlightRef(BaseModel):
    """An entry of the ``--ide-highlight-refs`` response."""

    model_config = ConfigDict(extra="ignore")

    line: int
    char_start: int
    char_end: int


class DefinitionResult(BaseModel):
    """An entry of the ``--ide-get-definition`` response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    result_type: str = ""
    pos: SymbolPosition
    definition_pos: SymbolPosition | None = None


class CompletionParam(BaseModel):
    """A parameter of a completion candidate's signature."""

    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = ""
    variadic: bool = False


class FunctionDetails(BaseModel):
    """Signature details attached to function completion candidates."""

    model_config = ConfigDict(extra="ignore")

    min_arity: int = 0
    return_type: str = ""
    params: list[CompletionParam] = Field(default_factory=list)


class AutoCompleteItem(BaseModel):
    """An entry of the ``--auto-complete`` response."""

    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = ""
    func_details: FunctionDetails | None = None
    expected_ty: bool = False


class FormatResponse(BaseModel):
    """Decoded ``--format`` response."""

    model_config = ConfigDict(extra="ignore")

    result: str = ""
    error_message: str = ""
    internal_error: bool = False


class OpenDocument(BaseModel):
    """An editor buffer handed to the soft diagnostic pass."""

    model_config = ConfigDict(frozen=True)

    path: str
    text: str


__all__ = [
    "AutoCompleteItem",
    "BackendTarget",
    "CheckResult",
    "ColorSegment",
    "CompletionParam",
    "DefinitionResult",
    "ErrorEntry",
    "FindRefsResult",
    "FormatResponse",
    "FunctionDetails",
    "HighlightRef",
    "JsonScalar",
    "JsonValue",
    "MessagePart",
    "OpenDocument",
    "OutlineSymbol",
    "Query",
    "SearchResult",
    "Severity",
    "SymbolPosition",
    "TypeAtPosResponse",
    "VersionInfo",
]
