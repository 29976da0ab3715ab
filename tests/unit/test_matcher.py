from __future__ import annotations

import os
from pathlib import Path

import pytest

from stampsync.core.folder.matcher import find_match
from stampsync.core.models import ComparisonError, FileReadError, FileRecord
from stampsync.services.hashing import Fingerprinter, HashingService, OpenCounter


T1 = 1_600_000_000
T2 = T1 + 3600


def _file(path: Path, content: bytes, mtime_ns: int) -> FileRecord:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    os.utime(path, ns=(mtime_ns, mtime_ns))
    return FileRecord.from_stat(path, path.stat())


@pytest.fixture
def counter() -> OpenCounter:
    return OpenCounter()


@pytest.fixture
def fingerprinter(counter: OpenCounter) -> Fingerprinter:
    return Fingerprinter(HashingService(), counter)


def test_case_insensitive_content_equal_pair_matches(tmp_path: Path, fingerprinter: Fingerprinter) -> None:
    source = _file(tmp_path / "src" / "A.txt", b"aaaaaaaaaa", T1 * 10**9)
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)
    assert source.bucket_key == target.bucket_key

    assert find_match([source], target, fingerprinter) is source


def test_same_second_pair_is_already_in_sync(
    tmp_path: Path, fingerprinter: Fingerprinter, counter: OpenCounter
) -> None:
    source = _file(tmp_path / "src" / "A.txt", b"aaaaaaaaaa", T1 * 10**9 + 100)
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T1 * 10**9 + 900_000_000)

    assert find_match([source], target, fingerprinter) is None
    assert counter.opened == 0


def test_different_content_does_not_match(tmp_path: Path, fingerprinter: Fingerprinter) -> None:
    source = _file(tmp_path / "src" / "a.txt", b"aaaaaaaaaa", T1 * 10**9)
    target = _file(tmp_path / "dst" / "a.txt", b"bbbbbbbbbb", T2 * 10**9)

    assert find_match([source], target, fingerprinter) is None


def test_no_candidates_is_no_match(tmp_path: Path, fingerprinter: Fingerprinter) -> None:
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)

    assert find_match([], target, fingerprinter) is None


def test_first_content_equal_candidate_wins(
    tmp_path: Path, fingerprinter: Fingerprinter, counter: OpenCounter
) -> None:
    in_sync = _file(tmp_path / "src" / "0" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)
    different = _file(tmp_path / "src" / "1" / "a.txt", b"cccccccccc", T1 * 10**9)
    first = _file(tmp_path / "src" / "2" / "a.txt", b"aaaaaaaaaa", T1 * 10**9)
    second = _file(tmp_path / "src" / "3" / "a.txt", b"aaaaaaaaaa", (T1 - 60) * 10**9)
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)

    match = find_match([in_sync, different, first, second], target, fingerprinter)

    assert match is first
    # different, target and first; the target is read once
    assert counter.opened == 3
    assert in_sync.fingerprint is None
    assert second.fingerprint is None


def test_unreadable_target_raises_comparison_error(tmp_path: Path, fingerprinter: Fingerprinter) -> None:
    source = _file(tmp_path / "src" / "a.txt", b"aaaaaaaaaa", T1 * 10**9)
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)
    target.path.unlink()

    with pytest.raises(ComparisonError) as excinfo:
        find_match([source], target, fingerprinter)

    assert excinfo.value.source == source.path
    assert excinfo.value.target == target.path
    assert excinfo.value.path == target.path
    assert isinstance(excinfo.value.__cause__, FileReadError)


def test_unreadable_candidate_is_not_skipped(tmp_path: Path, fingerprinter: Fingerprinter) -> None:
    broken = _file(tmp_path / "src" / "0" / "a.txt", b"aaaaaaaaaa", T1 * 10**9)
    good = _file(tmp_path / "src" / "1" / "a.txt", b"aaaaaaaaaa", T1 * 10**9)
    target = _file(tmp_path / "dst" / "a.txt", b"aaaaaaaaaa", T2 * 10**9)
    broken.path.unlink()

    with pytest.raises(ComparisonError) as excinfo:
        find_match([broken, good], target, fingerprinter)

    assert excinfo.value.path == broken.path
