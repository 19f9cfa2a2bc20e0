import asyncio
import datetime as dt
import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Callable, List, Protocol

import aiofiles
import aiofiles.os

from qrsync.config import config
from qrsync.domain.sessions import DiskEntry
from qrsync.errors import FileTooLargeError

CHUNK_SIZE = 1024 * 1024
STAGING_PREFIX = "."

SEM = asyncio.Semaphore(config.MAX_CONCURRENT_IO)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes:
        ...


def sanitize_filename(name: str) -> tuple[str, str]:
    """Split a client supplied name into a filesystem safe (stem, suffix)."""
    base = Path((name or "").replace("\\", "/")).name
    path = Path(base)

    stem = _UNSAFE_CHARS.sub("_", path.stem).strip("._")[:100] or "file"
    suffix = _UNSAFE_CHARS.sub("", path.suffix.lstrip("."))[:16]

    return stem, f".{suffix}" if suffix else ""


def stored_filename(original_name: str) -> str:
    stem, suffix = sanitize_filename(original_name)
    return f"{stem}_{time.time_ns()}{suffix}"


async def write_stream(stream: AsyncReadable, path: Path, max_file_size: int) -> int:
    async with SEM:
        path.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        async with aiofiles.open(path, "xb") as f:
            while chunk := await stream.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_file_size:
                    await f.close()
                    path.unlink(missing_ok=True)
                    raise FileTooLargeError(f"File exceeds max file size of {max_file_size} bytes.")
                await f.write(chunk)

        return written


def _link_unique(staged: Path, target_dir: Path, name_factory: Callable[[], str]) -> str:
    # os.link never replaces an existing target, unlike os.rename
    while True:
        name = name_factory()
        try:
            os.link(staged, target_dir / name)
            return name
        except FileExistsError:
            continue


async def store_stream(
        stream: AsyncReadable,
        target_dir: Path,
        name_factory: Callable[[], str],
        max_file_size: int
) -> tuple[str, int]:
    """Write a stream under a fresh name in target_dir; returns (name, size)."""
    staged = target_dir / f"{STAGING_PREFIX}{uuid.uuid4().hex}.part"
    try:
        size = await write_stream(stream, staged, max_file_size)
        async with SEM:
            name = await asyncio.to_thread(_link_unique, staged, target_dir, name_factory)
        return name, size

    finally:
        await delete_file(staged)


def _scan_dir(path: Path) -> List[DiskEntry]:
    entries: List[DiskEntry] = []
    try:
        with os.scandir(path) as it:
            for entry in it:
                if entry.name.startswith(STAGING_PREFIX) or not entry.is_file():
                    continue
                try:
                    stat = entry.stat()
                except FileNotFoundError:
                    continue
                entries.append(
                    DiskEntry(
                        name=entry.name,
                        size=stat.st_size,
                        modified_at=dt.datetime.fromtimestamp(stat.st_mtime, tz=dt.timezone.utc),
                    )
                )
    except (FileNotFoundError, NotADirectoryError):
        return []

    entries.sort(key=lambda e: (e.modified_at, e.name))
    return entries


async def list_dir(path: Path) -> List[DiskEntry]:
    async with SEM:
        return await asyncio.to_thread(_scan_dir, path)


async def delete_file(path: Path) -> bool:
    async with SEM:
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            return True
        except OSError:
            return False


async def delete_tree(path: Path) -> bool:
    """Remove a directory recursively. Returns False when it did not exist."""
    async with SEM:
        if not await aiofiles.os.path.isdir(path):
            return False
        await asyncio.to_thread(shutil.rmtree, path)
        return True
