"""Tests for filesystem helpers and the disk mirror."""

import uuid

import pytest

from qrsync.services.mirror import DiskMirror
from qrsync.utils.files import delete_tree, list_dir, sanitize_filename, stored_filename
from tests.conftest import BytesStream


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("a.png", ("a", ".png")),
        ("holiday photo.JPG", ("holiday_photo", ".JPG")),
        ("C:\\Users\\me\\notes.txt", ("notes", ".txt")),
        ("../secret", ("secret", "")),
        (".bashrc", ("bashrc", "")),
        ("", ("file", "")),
        ("archive.tar.gz", ("archive.tar", ".gz")),
    ],
)
def test_sanitize_filename(name: str, expected: tuple[str, str]) -> None:
    assert sanitize_filename(name) == expected


def test_stored_filename_keeps_stem_and_extension() -> None:
    name = stored_filename("a.png")

    stem, _, suffix = name.rpartition(".")
    assert suffix == "png"
    prefix, _, stamp = stem.rpartition("_")
    assert prefix == "a"
    assert stamp.isdigit()


@pytest.mark.asyncio
async def test_list_dir_missing_directory_is_empty(tmp_path) -> None:
    assert await list_dir(tmp_path / "nope") == []


@pytest.mark.asyncio
async def test_list_dir_skips_staging_files_and_folders(tmp_path) -> None:
    (tmp_path / "b.txt").write_bytes(b"bb")
    (tmp_path / ".abc.part").write_bytes(b"partial")
    (tmp_path / "nested").mkdir()

    entries = await list_dir(tmp_path)

    assert [(e.name, e.size) for e in entries] == [("b.txt", 2)]
    assert entries[0].modified_at.tzinfo is not None


@pytest.mark.asyncio
async def test_delete_tree_is_idempotent(tmp_path) -> None:
    folder = tmp_path / "session"
    (folder / "inner").mkdir(parents=True)
    (folder / "inner" / "x.bin").write_bytes(b"x")

    assert await delete_tree(folder) is True
    assert not folder.exists()
    assert await delete_tree(folder) is False


@pytest.mark.asyncio
async def test_disk_mirror_store_list_and_remove(disk_mirror: DiskMirror) -> None:
    session_id = uuid.uuid4()
    names = iter(["taken.txt", "taken.txt", "fresh.txt"])

    first, _ = await disk_mirror.store(session_id, BytesStream(b"one"), lambda: "taken.txt", 100)
    second, size = await disk_mirror.store(session_id, BytesStream(b"two"), lambda: next(names), 100)

    assert first == "taken.txt"
    assert second == "fresh.txt"
    assert size == 3
    assert (disk_mirror.session_dir(session_id) / "taken.txt").read_bytes() == b"one"
    assert {e.name for e in await disk_mirror.list_entries(session_id)} == {"taken.txt", "fresh.txt"}

    assert await disk_mirror.remove(session_id) is True
    assert await disk_mirror.list_entries(session_id) == []
    assert await disk_mirror.remove(session_id) is False


def test_disk_mirror_resolve_rejects_path_tricks(disk_mirror: DiskMirror) -> None:
    session_id = uuid.uuid4()
    folder = disk_mirror.session_dir(session_id)
    folder.mkdir(parents=True)
    (folder / "ok.txt").write_bytes(b"ok")
    (folder / ".hidden.part").write_bytes(b"no")

    assert disk_mirror.resolve(session_id, "ok.txt") == folder / "ok.txt"
    assert disk_mirror.resolve(session_id, "missing.txt") is None
    assert disk_mirror.resolve(session_id, ".hidden.part") is None
    assert disk_mirror.resolve(session_id, "../ok.txt") is None
    assert disk_mirror.resolve(session_id, "..") is None
