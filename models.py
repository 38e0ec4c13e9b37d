"""Data models for tag extraction runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

TagKind = Literal[
    "class",
    "module",
    "method",
    "singleton method",
    "constant",
    "attr_reader",
    "attr_writer",
    "attr_accessor",
    "alias",
]


class ErrorKind(str, Enum):
    """Category reported when a file cannot be turned into tags."""

    PARSE = "ParseError"
    IO = "IOError"
    CONFIGURATION = "ConfigurationError"


@dataclass(frozen=True)
class FilterConfig:
    """Rules deciding which discovered paths are handed to extraction."""

    exclude: tuple[str, ...] = ()
    recursive: bool = False
    all_files: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class ScanOptions:
    """Immutable configuration for one run.

    ``input_file`` takes precedence over ``files``; ``"-"`` reads the list of
    root paths from stdin.
    """

    files: tuple[str, ...] = ()
    input_file: str | None = None
    exclude: tuple[str, ...] = ()
    recursive: bool = False
    all_files: bool = False
    verbose: bool = False
    debug: bool = False
    verbose_debug: bool = False

    @property
    def filters(self) -> FilterConfig:
        """Return the file-selection subset of these options."""
        return FilterConfig(
            exclude=self.exclude,
            recursive=self.recursive,
            all_files=self.all_files,
            verbose=self.verbose,
        )


@dataclass
class RunStats:
    """Counters for a single traversal, owned by one reader."""

    files_processed: int = 0
    error_count: int = 0


@dataclass(frozen=True)
class Tag:
    """Structured tag record."""

    name: str
    kind: TagKind
    path: str
    line: int
    pattern: str
    full_name: str
    class_name: str | None = None
    language: str = "Ruby"

    def to_dict(self) -> dict[str, str | int | None]:
        """Serialize tag to dictionary output."""
        return {
            "name": self.name,
            "kind": self.kind,
            "path": self.path,
            "line": self.line,
            "language": self.language,
            "pattern": self.pattern,
            "full_name": self.full_name,
            "class": self.class_name,
        }
