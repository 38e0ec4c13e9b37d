"""CLI entry point for the Ruby tag generator."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from models import ScanOptions
from rbtags.engine import scan
from rbtags.errors import ConfigurationError

STDOUT_MARKER = "-"


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the command-line parser."""
    parser = argparse.ArgumentParser(description="Generate tags for Ruby source files")
    parser.add_argument("paths", nargs="*", help="Files or directories to scan")
    parser.add_argument(
        "-R",
        "--recursive",
        action="store_true",
        help="Descend into directories given as paths",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Skip files and directories matching PATTERN (repeatable, '*' wildcards allowed)",
    )
    parser.add_argument(
        "--all-files",
        action="store_true",
        help="Parse every file found while recursing, not only *.rb files",
    )
    parser.add_argument(
        "-L",
        "--input-file",
        metavar="FILE",
        help="Read the list of paths from FILE ('-' for stdin)",
    )
    parser.add_argument(
        "--format",
        choices=("ctags", "json", "table"),
        default="ctags",
        help="Output format (default: ctags)",
    )
    parser.add_argument(
        "-f",
        "--tag-file",
        default=STDOUT_MARKER,
        help="File to write output to, '-' for stdout (default: -)",
    )
    parser.add_argument("-V", "--verbose", action="store_true", help="Print additional information")
    parser.add_argument("-d", "--debug", action="store_true", help="Dump parsed syntax trees")
    parser.add_argument(
        "--debug-verbose",
        action="store_true",
        help="Dump the raw line scan of each file before parsing",
    )
    return parser


def options_from_args(args: argparse.Namespace) -> ScanOptions:
    """Convert parsed arguments into run options."""
    return ScanOptions(
        files=tuple(args.paths),
        input_file=args.input_file,
        exclude=tuple(args.exclude),
        recursive=args.recursive,
        all_files=args.all_files,
        verbose=args.verbose,
        debug=args.debug,
        verbose_debug=args.debug_verbose,
    )


def configure_logging(verbose: bool) -> None:
    """Configure loguru output: rendered tags on stdout, diagnostics on stderr."""
    logger.remove()
    logger.add(
        sys.stdout,
        level="INFO",
        format="{message}",
        filter=lambda record: record["level"].name == "INFO",
    )
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="{message}",
        filter=lambda record: record["level"].name != "INFO",
    )


def format_json_output(result: dict[str, Any]) -> str:
    """Render scan result as pretty JSON."""
    return json.dumps(result, indent=2)


def _escape_pattern(pattern: str) -> str:
    return pattern.replace("\\", "\\\\").replace("/", "\\/")


def format_ctags_output(result: dict[str, Any]) -> str:
    """Render tags as a sorted Vim-compatible tag file."""
    tags = sorted(
        result.get("tags", []),
        key=lambda tag: (tag.get("name", ""), tag.get("path", ""), tag.get("line", 0)),
    )
    lines = [
        "!_TAG_FILE_FORMAT\t2\t/extended format/",
        "!_TAG_FILE_SORTED\t1\t/0=unsorted, 1=sorted, 2=foldcase/",
    ]
    for tag in tags:
        pattern = _escape_pattern(str(tag.get("pattern", "")))
        lines.append(f"{tag['name']}\t{tag['path']}\t/^{pattern}$/;\"\t{tag['kind']}")
    return "\n".join(lines)


def _build_aligned_table(rows: list[list[str]]) -> list[str]:
    """Return table rows with simple aligned columns."""
    if not rows:
        return []

    column_widths = [0] * len(rows[0])
    for row in rows:
        for index, value in enumerate(row):
            column_widths[index] = max(column_widths[index], len(value))

    return [
        " | ".join(value.ljust(column_widths[index]) for index, value in enumerate(row))
        for row in rows
    ]


def format_table_output(result: dict[str, Any]) -> str:
    """Render scan result as a human-readable table."""
    summary = result.get("summary", {})

    table_rows: list[list[str]] = [["NAME", "KIND", "FILE", "LINE", "FULL NAME"]]
    for tag in result.get("tags", []):
        table_rows.append(
            [
                str(tag.get("name", "")),
                str(tag.get("kind", "")),
                str(tag.get("path", "")),
                str(tag.get("line", "")),
                str(tag.get("full_name") or "-"),
            ]
        )

    lines = [
        "=== Scan Summary ===",
        f"Scanned files: {summary.get('scanned_files', 0)}",
        f"Errors: {summary.get('error_count', 0)}",
        f"Tags: {summary.get('tags_count', 0)}",
        f"Duration: {summary.get('duration_ms', 0)} ms",
        "",
        "=== Tags ===",
        *_build_aligned_table(table_rows),
    ]

    return "\n".join(lines)


def render_output(result: dict[str, Any], output_format: str) -> str:
    """Render scan result in the requested format."""
    if output_format == "json":
        return format_json_output(result)
    if output_format == "table":
        return format_table_output(result)
    return format_ctags_output(result)


def write_output_file(output_path: str, content: str) -> None:
    """Write rendered content to an output file, overwriting if it exists."""
    Path(output_path).write_text(f"{content}\n", encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    """Run the tag generator CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.paths and not args.input_file:
        parser.error("no paths given; pass paths or --input-file")

    options = options_from_args(args)
    configure_logging(verbose=options.verbose or options.debug or options.verbose_debug)

    try:
        result = scan(options)
    except ConfigurationError as exc:
        logger.error(f"Error: {exc}")
        return 1

    rendered_output = render_output(result, args.format)

    if args.tag_file == STDOUT_MARKER:
        logger.info(rendered_output)
    else:
        try:
            write_output_file(args.tag_file, rendered_output)
        except OSError as exc:
            logger.error(f"Error: failed to write output file '{args.tag_file}': {exc}")
            return 1
        if options.verbose:
            logger.debug(f"Wrote output to: {args.tag_file}")

    error_count = int(result.get("summary", {}).get("error_count", 0))
    return 2 if error_count > 0 else 0


if __name__ == "__main__":
    raise SystemExit(main())
