"""Exceptions raised while resolving inputs and extracting tags."""

from __future__ import annotations

from models import ErrorKind


class RbtagsError(Exception):
    """Base error carrying the category shown in diagnostics."""

    kind: ErrorKind = ErrorKind.PARSE


class ParseError(RbtagsError):
    """Source file could not be parsed into a syntax tree."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class ConfigurationError(RbtagsError):
    """Run cannot start because its inputs are misconfigured."""

    kind = ErrorKind.CONFIGURATION
