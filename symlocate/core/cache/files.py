"""File helpers for the local cache: atomic writes, interruptible copies, digests."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

from symlocate.core.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

PARTIAL_SUFFIX = ".partial"


def check_cancelled(cancel: threading.Event | None) -> None:
    """Raise OperationCancelledError if ``cancel`` has been set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("Operation cancelled")


def iter_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Yield successive chunks read from a binary file object."""
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            return
        yield chunk


def write_atomically(
    dest: Path,
    chunks: Iterable[bytes],
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    times_from: Path | None = None,
) -> int:
    """Stream ``chunks`` into ``dest`` and return the number of bytes written.

    Data goes to a ``.partial`` file next to ``dest`` that is moved into place
    only once complete, so concurrent readers never see a truncated file.
    Cancellation is checked after every chunk; on any error the partial file
    is removed. ``times_from`` copies that file's timestamps onto ``dest``.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=dest.parent, prefix=f".{dest.name}.", suffix=PARTIAL_SUFFIX
    )
    tmp = Path(tmp_name)
    total = 0
    try:
        with os.fdopen(fd, "wb") as out:
            for chunk in chunks:
                if not chunk:
                    continue
                out.write(chunk)
                total += len(chunk)
                if on_progress:
                    on_progress(total)
                check_cancelled(cancel)
        if times_from is not None:
            shutil.copystat(times_from, tmp)
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return total


def copy_file_atomically(
    src: Path,
    dest: Path,
    chunk_size: int = 8192,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
) -> int:
    """Copy ``src`` to ``dest`` through a temp file, keeping the source timestamps."""
    with src.open("rb") as handle:
        return write_atomically(
            dest, iter_chunks(handle, chunk_size), on_progress, cancel, times_from=src
        )


def same_file(a: Path, b: Path) -> bool:
    """True if both paths exist and refer to the same file."""
    try:
        return a.samefile(b)
    except OSError:
        return False


def remove_stray_file(path: Path) -> bool:
    """Delete a plain file occupying a name the cache layout needs as a directory."""
    if not path.exists() or path.is_dir():
        return False
    logger.info("Removing file %s from symbol cache to make way for a directory.", path)
    path.unlink()
    return True


def make_room_for(dest: Path, root: Path) -> None:
    """Remove plain files sitting on directories between ``root`` and ``dest``."""
    for parent in reversed(dest.relative_to(root).parents[:-1]):
        remove_stray_file(root / parent)


def compute_file_hash(file: Path) -> bytes:
    """Compute the MD5 digest of a file's contents."""
    digest = hashlib.md5(usedforsecurity=False)
    with file.open("rb") as handle:
        for chunk in iter_chunks(handle, 1 << 16):
            digest.update(chunk)
    return digest.digest()
