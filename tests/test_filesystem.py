"""Tests for root resolution, recursion and exclude rules."""

import io
import os
import sys
from pathlib import Path

import pytest

from models import ScanOptions
from rbtags.errors import ConfigurationError
from rbtags.filesystem import FileFinder, base_name, compile_exclude_patterns


def _touch(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _finder(**kwargs: object) -> FileFinder:
    return FileFinder(ScanOptions(**kwargs))  # type: ignore[arg-type]


def test_compile_exclude_patterns_preserves_order_and_kind() -> None:
    """Verify glob patterns compile to regexes and literals stay literal."""
    rules = compile_exclude_patterns(["vendor", "*.tmp", "fixtures"])

    assert [rule.pattern for rule in rules] == ["vendor", "*.tmp", "fixtures"]
    assert rules[0].regex is None
    assert rules[1].regex is not None
    assert rules[1].regex.pattern == r"[^/]+\.tmp"
    assert rules == compile_exclude_patterns(["vendor", "*.tmp", "fixtures"])


def test_glob_pattern_matches_whole_base_name_only() -> None:
    """Verify '*.tmp' excludes foo.tmp but not foo.tmpx or a tmp directory."""
    finder = _finder(exclude=("*.tmp",))

    assert finder.excluded("foo.tmp") is not None
    assert finder.excluded("src/foo.tmp") is not None
    assert finder.excluded("foo.tmpx") is None
    assert finder.excluded("tmp/foo.rb") is None
    assert finder.excluded("build.tmp/foo.rb") is not None


def test_literal_pattern_matches_exact_base_name_or_path_substring() -> None:
    """Verify literal rules compare base names exactly and full paths by substring."""
    finder = _finder(exclude=("Rakefile", "vendor/"))

    assert finder.excluded("lib/Rakefile") is not None
    assert finder.excluded("lib/rakefile_helper.rb") is None
    assert finder.excluded("app/vendor/gem.rb") is not None
    assert finder.excluded("app/vendored.rb") is None


def test_base_name_rules_take_priority_over_full_path_rules() -> None:
    """Verify a later base-name match wins over an earlier full-path match."""
    finder = _finder(exclude=("vendor", "*.rb"))

    match = finder.excluded("vendor/gem.rb")

    assert match is not None
    assert match.pattern == "*.rb"
    assert finder.excluded("vendor/README").pattern == "vendor"  # type: ignore[union-attr]


def test_base_name_ignores_trailing_separator() -> None:
    """Verify directory roots given with a trailing slash use their last segment."""
    assert base_name("dir/") == "dir"
    assert base_name("a/b/c.rb") == "c.rb"
    assert base_name("/") == "/"


def test_excluded_logs_matching_rule_when_verbose(log_messages: list[str]) -> None:
    """Verify verbose mode reports which rule excluded a file."""
    _finder(exclude=("*~",), verbose=True).excluded("lib/a.rb~")
    _finder(exclude=("*~",)).excluded("lib/b.rb~")

    assert log_messages == ["Ignoring lib/a.rb~ because of exclude rule: '*~'"]


def test_depth_zero_files_bypass_suffix_filter(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify named files are kept while discovered non-Ruby files are dropped."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "notes.txt")
    _touch(tmp_path / "sub" / "notes.txt")
    _touch(tmp_path / "sub" / "model.rb")

    finder = _finder(files=("notes.txt", "sub"), recursive=True)

    assert finder.include_file("notes.txt", 0)
    assert not finder.include_file("sub/notes.txt", 1)
    assert list(finder.each_file()) == ["notes.txt", "sub/model.rb"]


def test_all_files_includes_discovered_non_ruby_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify all_files keeps every discovered file."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "sub" / "Gemfile")

    finder = _finder(files=("sub",), recursive=True, all_files=True)

    assert list(finder.each_file()) == ["sub/Gemfile"]


def test_mixed_roots_scenario(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    log_messages: list[str],
) -> None:
    """Verify missing roots are reported once and backup files are excluded."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "a.rb", "class A\nend\n")
    _touch(tmp_path / "dir" / "b.rb", "class B\nend\n")
    _touch(tmp_path / "dir" / "b.rb~", "class Stale\nend\n")

    finder = _finder(files=("a.rb", "missing.rb", "dir/"), recursive=True, exclude=("*~",))

    assert list(finder.each_file()) == ["a.rb", "dir/b.rb"]
    missing = [message for message in log_messages if "missing.rb" in message]
    assert len(missing) == 1
    assert missing[0].endswith(": 'missing.rb': no such file or directory")


def test_depth_zero_paths_are_normalized(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify redundant segments are collapsed for named paths and their entries."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "lib" / "a.rb")
    _touch(tmp_path / "lib" / "nested" / "b.rb")

    files = list(_finder(files=("./lib/../lib/a.rb",)).each_file())
    walked = sorted(_finder(files=("./lib//",), recursive=True).each_file())

    assert files == ["lib/a.rb"]
    assert walked == ["lib/a.rb", "lib/nested/b.rb"]


def test_directories_are_skipped_without_recursive(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify directory roots contribute nothing unless recursion is enabled."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "lib" / "a.rb")

    assert list(_finder(files=("lib",)).each_file()) == []


def test_excluded_directory_is_not_descended(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify exclude rules prune whole subtrees."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "app" / "model.rb")
    _touch(tmp_path / "app" / "vendor" / "gem.rb")
    listed: list[str] = []
    real_listdir = os.listdir

    def recording_listdir(path: str) -> list[str]:
        listed.append(path)
        return real_listdir(path)

    monkeypatch.setattr(os, "listdir", recording_listdir)
    finder = _finder(files=("app",), recursive=True, exclude=("vendor",))

    assert list(finder.each_file()) == ["app/model.rb"]
    assert "app/vendor" not in listed


def test_unreadable_directory_is_reported_and_skipped(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    log_messages: list[str],
) -> None:
    """Verify permission errors while listing skip the subtree with a warning."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "src" / "ok.rb")
    _touch(tmp_path / "src" / "locked" / "secret.rb")
    real_listdir = os.listdir

    def guarded_listdir(path: str) -> list[str]:
        if path.endswith("locked"):
            raise PermissionError(13, "Permission denied", path)
        return real_listdir(path)

    monkeypatch.setattr(os, "listdir", guarded_listdir)

    files = list(_finder(files=("src",), recursive=True).each_file())

    assert files == ["src/ok.rb"]
    assert any(
        message.endswith(": skipping unreadable directory 'src/locked'") for message in log_messages
    )


def test_push_and_pull_iteration_agree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify callback and iterator traversal yield the same files."""
    monkeypatch.chdir(tmp_path)
    for name in ("a.rb", "b.rb", "c.rb"):
        _touch(tmp_path / "lib" / name)

    finder = _finder(files=("lib",), recursive=True)
    pushed: list[str] = []

    assert finder.each_file(pushed.append) is None
    assert pushed == list(finder.each_file())
    assert pushed == list(finder)


def test_input_file_lists_roots(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify paths are read one per line and explicit files are ignored."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "a.rb")
    _touch(tmp_path / "b.rb")
    _touch(tmp_path / "ignored.rb")
    (tmp_path / "files.txt").write_bytes(b"a.rb\r\nb.rb\n")

    finder = _finder(files=("ignored.rb",), input_file="files.txt")

    assert list(finder.each_file()) == ["a.rb", "b.rb"]


def test_input_file_dash_reads_stdin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify '-' reads root paths from standard input."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "lib" / "a.rb")
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"lib/a.rb\n")))

    assert list(_finder(input_file="-").each_file()) == ["lib/a.rb"]


def test_missing_input_file_raises_configuration_error(tmp_path: Path) -> None:
    """Verify an unopenable path list is fatal."""
    finder = _finder(input_file=str(tmp_path / "nope.txt"))

    with pytest.raises(ConfigurationError, match="cannot open input file"):
        list(finder.each_file())


def test_undecodable_names_in_input_file_resolve(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify Latin-1 file names in a path list reach the filesystem unchanged."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "a.rb")
    (tmp_path / "files.txt").write_bytes(b"a.rb\ncaf\xe9.rb\n")
    with open(os.path.join(os.fsencode(tmp_path), b"caf\xe9.rb"), "wb") as handle:
        handle.write(b"class Cafe\nend\n")

    files = list(_finder(input_file="files.txt").each_file())

    assert files == ["a.rb", os.fsdecode(b"caf\xe9.rb")]
    assert all(os.path.exists(file) for file in files)


def test_symlinked_directory_cycle_is_walked_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify a link back to an ancestor does not revisit its files."""
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "lib" / "a.rb")
    os.symlink("..", tmp_path / "lib" / "up")

    finder = _finder(files=("lib",), recursive=True)

    assert list(finder.each_file()) == ["lib/a.rb"]
    assert list(finder.each_file()) == ["lib/a.rb"]
