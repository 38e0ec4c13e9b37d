"""Tag extraction engine.

Drives every selected file through reading, encoding normalization, parsing
and tag extraction. A failure in one file is reported and counted, and the
run moves on to the next file.
"""

from __future__ import annotations

from pprint import pformat
from time import perf_counter
from typing import Any, Callable, Iterable, Iterator, Protocol

from loguru import logger

from models import ErrorKind, RunStats, ScanOptions, Tag
from rbtags.errors import RbtagsError
from rbtags.extractors import RubyParser, TagVisitor, scan_lines
from rbtags.filesystem import FileFinder

SOURCE_ENCODING = "utf-8"


class Parser(Protocol):
    def parse(self, contents: str, filename: str) -> Any: ...


class Visitor(Protocol):
    def tags(self) -> Iterable[Tag]: ...


VisitorFactory = Callable[[Any, str, str], Visitor]


def normalize_encoding(data: bytes | str) -> str:
    """Return text with invalid UTF-8 sequences replaced.

    Bytes that do not decode become U+FFFD; unencodable code points in
    ``str`` input (lone surrogates) become ``?``. Valid text is unchanged.
    """
    if isinstance(data, bytes):
        return data.decode(SOURCE_ENCODING, errors="replace")
    return data.encode(SOURCE_ENCODING, errors="replace").decode(SOURCE_ENCODING)


def error_kind(exc: BaseException) -> ErrorKind:
    """Map an extraction failure to the category shown in diagnostics."""
    if isinstance(exc, RbtagsError):
        return exc.kind
    if isinstance(exc, (OSError, UnicodeError)):
        return ErrorKind.IO
    return ErrorKind.PARSE


class TagReader:
    """Streams tags for every file selected by a :class:`FileFinder`."""

    def __init__(
        self,
        options: ScanOptions,
        parser: Parser | None = None,
        visitor_factory: VisitorFactory | None = None,
    ) -> None:
        self.options = options
        self.parser = parser if parser is not None else RubyParser()
        self.visitor_factory = visitor_factory if visitor_factory is not None else TagVisitor
        self.stats = RunStats()

    @property
    def file_count(self) -> int:
        return self.stats.files_processed

    @property
    def error_count(self) -> int:
        return self.stats.error_count

    def file_finder(self) -> FileFinder:
        return FileFinder(self.options)

    def read_file(self, filename: str) -> str:
        with open(filename, "rb") as file_handle:
            data = file_handle.read()
        return normalize_encoding(data)

    def debug_dump(self, obj: object) -> None:
        logger.debug(pformat(obj))

    def parse_file(self, contents: str, filename: str) -> Any:
        tree = self.parser.parse(contents, filename)
        if self.options.debug:
            self.debug_dump(tree)
        return tree

    def extract_tags(self, file: str) -> list[Tag]:
        """Read, parse and visit one file, returning all of its tags."""
        contents = self.read_file(file)
        if self.options.verbose_debug:
            self.debug_dump(scan_lines(contents))
        tree = self.parse_file(contents, file)
        return list(self.visitor_factory(tree, file, contents).tags())

    def iter_tags(self) -> Iterator[Tag]:
        """Yield tags file by file, containing per-file failures."""
        for file in self.file_finder().iter_files():
            try:
                if self.options.verbose:
                    logger.debug(f"Parsing file `{file}'")
                try:
                    file_tags = self.extract_tags(file)
                except Exception as exc:
                    logger.error(f"{error_kind(exc).value} parsing '{file}': {exc}")
                    self.stats.error_count += 1
                    continue
                yield from file_tags
            finally:
                self.stats.files_processed += 1

    def each_tag(self, callback: Callable[[Tag], object] | None = None) -> Iterator[Tag] | None:
        """Push each tag into ``callback`` or return an iterator over them."""
        if callback is None:
            return self.iter_tags()
        for tag in self.iter_tags():
            callback(tag)
        return None

    def __iter__(self) -> Iterator[Tag]:
        return self.iter_tags()


def scan(options: ScanOptions) -> dict[str, Any]:
    """Run one extraction and return a summary plus all tags."""
    started_at = perf_counter()
    reader = TagReader(options)
    tags = list(reader.iter_tags())
    duration_ms = int((perf_counter() - started_at) * 1000)

    return {
        "summary": {
            "scanned_files": reader.file_count,
            "error_count": reader.error_count,
            "tags_count": len(tags),
            "duration_ms": duration_ms,
        },
        "tags": [tag.to_dict() for tag in tags],
    }
