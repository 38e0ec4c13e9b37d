"""Filesystem utilities for source file discovery."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from functools import cached_property
from typing import BinaryIO, Callable, Iterable, Iterator

from loguru import logger

from models import ScanOptions
from rbtags.errors import ConfigurationError

RUBY_EXTENSION = ".rb"
STDIN_MARKER = "-"
GLOB_WILDCARD = "*"


def program_name() -> str:
    """Return the name diagnostics are prefixed with."""
    return os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "rbtags"


def base_name(path: str) -> str:
    """Return the last path segment, ignoring trailing separators."""
    stripped = path.rstrip("/" + os.sep)
    return os.path.basename(stripped) if stripped else path


def clean_path(path: str) -> str:
    """Collapse redundant separators and ``.``/``..`` segments lexically."""
    return os.path.normpath(path)


@dataclass(frozen=True)
class ExcludeRule:
    """Compiled exclude pattern.

    Patterns containing ``*`` become regular expressions where each ``*``
    stands for one or more characters other than ``/``. Other patterns are
    compared literally.
    """

    pattern: str
    regex: re.Pattern[str] | None = None
    path_regex: re.Pattern[str] | None = None

    @classmethod
    def compile(cls, pattern: str) -> ExcludeRule:
        if GLOB_WILDCARD not in pattern:
            return cls(pattern=pattern)
        expression = re.escape(pattern).replace(r"\*", "[^/]+")
        return cls(
            pattern=pattern,
            regex=re.compile(expression),
            path_regex=re.compile(rf"(?:^|/){expression}(?:/|$)"),
        )

    def matches_name(self, name: str) -> bool:
        """Return True when the rule matches a bare file name."""
        if self.regex is not None:
            return self.regex.fullmatch(name) is not None
        return name == self.pattern

    def matches_path(self, path: str) -> bool:
        """Return True when the rule matches somewhere inside a full path.

        Glob rules must line up with whole path segments.
        """
        if self.path_regex is not None:
            return self.path_regex.search(path) is not None
        return self.pattern in path

    def __str__(self) -> str:
        return self.pattern


def compile_exclude_patterns(patterns: Iterable[str]) -> tuple[ExcludeRule, ...]:
    """Compile exclude patterns, preserving their declared order."""
    return tuple(ExcludeRule.compile(pattern) for pattern in patterns)


def _read_paths(stream: BinaryIO) -> Iterator[str]:
    # Paths decode like os.listdir results so undecodable names still resolve.
    for line in stream:
        yield os.fsdecode(line.rstrip(b"\r\n"))


class FileFinder:
    """Resolves root inputs into the files tags are extracted from."""

    def __init__(self, options: ScanOptions) -> None:
        self.options = options
        self.filters = options.filters
        self._seen_directories: set[tuple[int, int]] = set()

    @cached_property
    def exclude_rules(self) -> tuple[ExcludeRule, ...]:
        return compile_exclude_patterns(self.filters.exclude)

    def excluded(self, file: str) -> ExcludeRule | None:
        """Return the first rule excluding ``file``, if any.

        Rules are checked against the base name first and only then against
        the full path, so a base-name match always wins.
        """
        name = base_name(file)
        match = next((rule for rule in self.exclude_rules if rule.matches_name(name)), None)
        if match is None:
            match = next((rule for rule in self.exclude_rules if rule.matches_path(file)), None)

        if match is not None and self.filters.verbose:
            logger.debug(f"Ignoring {file} because of exclude rule: '{match}'")

        return match

    @staticmethod
    def is_source_file(file: str) -> bool:
        return file.endswith(RUBY_EXTENSION)

    def include_file(self, file: str, depth: int) -> bool:
        """Return True when a resolved file should be handed to extraction."""
        eligible = depth == 0 or self.filters.all_files or self.is_source_file(file)
        return eligible and self.excluded(file) is None

    def resolve(self, file: str, depth: int = 0) -> Iterator[str]:
        """Yield the files ``file`` resolves to at the given recursion depth."""
        if os.path.isdir(file):
            if self.filters.recursive and self.excluded(file) is None and self._first_visit(file):
                for entry in self._iter_directory(file):
                    if depth == 0:
                        entry = clean_path(entry)
                    yield from self.resolve(entry, depth + 1)
        elif depth > 0 or os.path.exists(file):
            if depth == 0:
                file = clean_path(file)
            if self.include_file(file, depth):
                yield file
        else:
            logger.warning(f"{program_name()}: '{file}': no such file or directory")

    def _first_visit(self, directory: str) -> bool:
        """Return False when ``directory`` was already walked, e.g. via a symlink."""
        stat = os.stat(directory)
        key = (stat.st_dev, stat.st_ino)
        if key in self._seen_directories:
            return False
        self._seen_directories.add(key)
        return True

    def _iter_directory(self, directory: str) -> Iterator[str]:
        try:
            entries = os.listdir(directory)
        except PermissionError:
            logger.warning(f"{program_name()}: skipping unreadable directory '{directory}'")
            return

        for name in entries:
            if name not in (os.curdir, os.pardir):
                yield os.path.join(directory, name)

    def input_files(self) -> Iterator[str]:
        """Yield root paths in the order they were supplied."""
        input_file = self.options.input_file
        if input_file is None:
            yield from self.options.files
            return

        if input_file == STDIN_MARKER:
            yield from _read_paths(sys.stdin.buffer)
            return

        try:
            stream = open(input_file, "rb")
        except OSError as exc:
            raise ConfigurationError(f"cannot open input file '{input_file}': {exc}") from exc
        with stream:
            yield from _read_paths(stream)

    def iter_files(self) -> Iterator[str]:
        """Yield every file selected for extraction."""
        self._seen_directories.clear()
        for root in self.input_files():
            yield from self.resolve(root)

    def each_file(self, callback: Callable[[str], object] | None = None) -> Iterator[str] | None:
        """Push each selected file into ``callback`` or return an iterator over them."""
        if callback is None:
            return self.iter_files()
        for file in self.iter_files():
            callback(file)
        return None

    def __iter__(self) -> Iterator[str]:
        return self.iter_files()
