from __future__ import annotations

import os
from pathlib import Path

import pytest

from stampsync.core.folder import scanner as scanner_module
from stampsync.core.folder.scanner import ScanOptions, TreeScanner, index_tree
from stampsync.core.models import BucketKey, WalkError


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    return tmp_path.resolve()


def _write(path: Path, content: bytes = b"aaaaaaaaaa") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def test_index_groups_by_upper_case_name_and_size(tree: Path) -> None:
    _write(tree / "A.txt")
    _write(tree / "sub" / "a.txt")
    _write(tree / "sub" / "a.TXT.bak")
    _write(tree / "other" / "a.txt", b"short")

    index, count = index_tree(tree)

    assert count == 4
    assert index.file_count == 4
    ten = index.candidates(BucketKey("A.TXT", 10))
    assert [r.path for r in ten] == [tree / "A.txt", tree / "sub" / "a.txt"]
    assert [r.path for r in index.candidates(BucketKey("A.TXT", 5))] == [tree / "other" / "a.txt"]


def test_walk_order_is_lexical_across_files_and_subdirectories(tree: Path) -> None:
    _write(tree / "b" / "x.txt")
    _write(tree / "a" / "x.txt")
    _write(tree / "z.txt")
    _write(tree / "c.txt")

    paths = [r.path for r in TreeScanner().iter_records(tree)]

    assert paths == [
        tree / "a" / "x.txt",
        tree / "b" / "x.txt",
        tree / "c.txt",
        tree / "z.txt",
    ]


def test_subdirectory_sorting_before_sibling_file_comes_first(tree: Path) -> None:
    _write(tree / "x.txt")
    _write(tree / "a" / "x.txt")

    index, _ = index_tree(tree)

    assert [r.path for r in index.candidates(BucketKey("X.TXT", 10))] == [
        tree / "a" / "x.txt",
        tree / "x.txt",
    ]


def test_hidden_directories_are_pruned(tree: Path) -> None:
    _write(tree / "visible.txt")
    _write(tree / ".git" / "config")
    _write(tree / "sub" / ".cache" / "deep" / "blob.bin")
    _write(tree / "sub" / ".hidden_file")

    paths = [r.path for r in TreeScanner().iter_records(tree)]

    assert paths == [tree / "sub" / ".hidden_file", tree / "visible.txt"]
    _, count = index_tree(tree)
    assert count == 2


def test_include_hidden_descends_into_hidden_directories(tree: Path) -> None:
    _write(tree / ".git" / "config")

    index, count = index_tree(tree, ScanOptions(include_hidden=True))

    assert count == 1
    assert [r.path for r in index.candidates(BucketKey("CONFIG", 10))] == [tree / ".git" / "config"]


def test_records_carry_size_and_mtime(tree: Path) -> None:
    path = _write(tree / "file.bin", b"12345")
    os.utime(path, ns=(1_600_000_000_500_000_000, 1_600_000_000_500_000_000))

    (record,) = list(TreeScanner().iter_records(tree))

    assert record.size == 5
    assert record.mtime_ns == 1_600_000_000_500_000_000
    assert record.mtime_seconds == 1_600_000_000
    assert record.fingerprint is None


def test_symlinked_root_is_resolved(tree: Path) -> None:
    real = tree / "real"
    _write(real / "file.txt")
    link = tree / "link"
    link.symlink_to(real, target_is_directory=True)

    (record,) = list(TreeScanner().iter_records(link))

    assert record.path == real.resolve() / "file.txt"


def test_symlink_to_regular_file_is_indexed_with_link_metadata(tree: Path) -> None:
    real = _write(tree / "real.txt")
    link = tree / "link.txt"
    link.symlink_to(real)

    index, count = index_tree(tree)

    assert count == 2
    (record,) = index.candidates(BucketKey("LINK.TXT", link.lstat().st_size))
    assert record.path == link
    assert record.mtime_ns == link.lstat().st_mtime_ns


def test_links_to_directories_and_broken_links_are_skipped(tree: Path) -> None:
    target = _write(tree / "outside" / "file.txt")
    root = tree / "walked"
    root.mkdir()
    (root / "dir_link").symlink_to(target.parent, target_is_directory=True)
    (root / "broken").symlink_to(tree / "missing")

    assert list(TreeScanner().iter_records(root)) == []


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
def test_fifos_are_skipped(tree: Path) -> None:
    _write(tree / "file.txt")
    os.mkfifo(tree / "pipe")

    assert [r.name for r in TreeScanner().iter_records(tree)] == ["file.txt"]


def test_missing_root_raises_walk_error(tree: Path) -> None:
    with pytest.raises(WalkError) as excinfo:
        index_tree(tree / "missing")

    assert "directory not found" in str(excinfo.value)


def test_file_root_raises_walk_error(tree: Path) -> None:
    path = _write(tree / "file.txt")

    with pytest.raises(WalkError):
        index_tree(path)


def _lock_directory(tree: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    locked = tree / "locked"
    real_scandir = scanner_module.os.scandir

    def fake_scandir(path):
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(locked))
        return real_scandir(path)

    monkeypatch.setattr(scanner_module.os, "scandir", fake_scandir)
    return locked


def _setup_locked_tree(tree: Path) -> None:
    _write(tree / "first.txt")
    _write(tree / "locked" / "inner.txt")
    _write(tree / "open" / "second.txt")


def test_listing_error_aborts_walk(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _setup_locked_tree(tree)
    locked = _lock_directory(tree, monkeypatch)

    with pytest.raises(WalkError) as excinfo:
        index_tree(tree)

    assert excinfo.value.path == locked
    assert "Permission denied" in str(excinfo.value)


def test_listing_error_is_reported_to_callback(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _setup_locked_tree(tree)
    locked = _lock_directory(tree, monkeypatch)
    errors: list[WalkError] = []

    records = list(TreeScanner().iter_records(tree, on_error=errors.append))

    assert [r.name for r in records] == ["first.txt", "second.txt"]
    assert [e.path for e in errors] == [locked]


def test_vanished_file_aborts_walk(tree: Path) -> None:
    _write(tree / "a.txt")
    gone = _write(tree / "b.txt")
    records = TreeScanner().iter_records(tree)

    assert next(records).name == "a.txt"
    gone.unlink()

    with pytest.raises(WalkError) as excinfo:
        next(records)

    assert excinfo.value.path == gone
