"""Locating the source files a binary was built from."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from symlocate.core.cache.files import check_cancelled, compute_file_hash
from symlocate.core.config import default_source_cache
from symlocate.core.exceptions import OperationCancelledError, SymlocateError
from symlocate.core.models import SourceFileRecord, SourceMatch

if TYPE_CHECKING:
    from symlocate.providers.base import SourceServerProvider

logger = logging.getLogger(__name__)

# The source-server machinery is not reentrant: one query at a time per process
_SOURCE_SERVER_LOCK = threading.Lock()
_WAIT_INTERVAL = 0.1

_EXE_ANCESTORS = 3
_SEPARATORS = re.compile(r"[\\/]")


@contextmanager
def source_server_slot(cancel: threading.Event | None = None) -> Iterator[None]:
    """Hold the process-wide source-server slot.

    Waiting for the slot can be cancelled; the query run inside it cannot.
    """
    while not _SOURCE_SERVER_LOCK.acquire(timeout=_WAIT_INTERVAL):
        check_cancelled(cancel)
    try:
        yield
    finally:
        _SOURCE_SERVER_LOCK.release()


def source_path_suffixes(build_time_path: str) -> list[str]:
    """Trailing parts of a build path, longest first, ending with the file name.

    ``c:\\src\\lib\\a.c`` gives ``src/lib/a.c``, ``lib/a.c`` and ``a.c``;
    a bare ``a.c`` gives just ``a.c``.
    """
    parts = _SEPARATORS.split(build_time_path)
    suffixes = []
    for i in range(1, len(parts)):
        if parts[i] and parts[-1]:
            suffixes.append("/".join(part for part in parts[i:] if part))
    if not suffixes and parts[-1]:
        suffixes.append(parts[-1])
    return suffixes


def candidate_locations(source_path: Sequence[Path], exe_path: Path | None = None) -> list[Path]:
    """Source path directories, preceded by the executable's directory and its parents."""
    locations = list(source_path)
    if exe_path is None:
        return locations

    exe_dir = exe_path.parent
    if not exe_dir.is_dir():
        return locations
    for _ in range(_EXE_ANCESTORS):
        locations.insert(0, exe_dir)
        logger.debug("Adding exe path %s", exe_dir)
        if exe_dir.parent == exe_dir:
            break
        exe_dir = exe_dir.parent
    return locations


def checksum_matches(record: SourceFileRecord, path: Path) -> bool:
    """Compare a file against the record's checksum. No checksum always matches."""
    if not record.has_checksum:
        return True
    try:
        return compute_file_hash(path) == record.checksum
    except OSError as e:
        logger.warning("Cannot read %s to verify its checksum: %s", path, e)
        return False


class SourceLocator:
    """Finds source files: build location, then source server, then the source path."""

    def __init__(
        self,
        source_path: Sequence[Path] = (),
        source_cache_dir: Path | None = None,
        source_server: SourceServerProvider | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._source_path = tuple(source_path)
        self._source_cache_dir = source_cache_dir or default_source_cache()
        self._source_server = source_server
        self._cancel = cancel

    def locate(
        self,
        record: SourceFileRecord,
        pdb_path: Path | None = None,
        exe_path: Path | None = None,
        require_checksum_match: bool = False,
    ) -> SourceMatch | None:
        """Find the file described by ``record``.

        Args:
            record: The source file reference from the symbol file
            pdb_path: Symbol file holding source-server data, if any
            exe_path: Executable whose directory tree is searched first
            require_checksum_match: If False, a file with the right name but the
                wrong checksum is returned when nothing better is found

        Returns:
            SourceMatch, or None if nothing suitable was found
        """
        best_guess: Path | None = None

        build_path = Path(record.build_time_path)
        if build_path.is_file():
            best_guess = build_path
            if checksum_matches(record, build_path):
                logger.info("Found %s in build location.", build_path)
                return SourceMatch(build_path, True)

        fetched = self._from_source_server(record, pdb_path)
        if fetched is not None:
            logger.info("Got %s from source server.", fetched)
            return SourceMatch(fetched, True)

        logger.debug(
            "%s not present or not on source server, searching source path",
            record.build_time_path,
        )
        locations = candidate_locations(self._source_path, exe_path)
        for suffix in source_path_suffixes(record.build_time_path):
            for location in locations:
                check_cancelled(self._cancel)
                probe = location / suffix
                logger.debug("Probing %s", probe)
                if not probe.is_file():
                    continue
                if best_guess is None:
                    best_guess = probe
                if checksum_matches(record, probe):
                    logger.info("Found source %s", probe)
                    return SourceMatch(probe, True)
                logger.info("Found file %s but checksum mismatches", probe)

        if not require_checksum_match and best_guess is not None:
            logger.warning("Checksum mismatch for %s", best_guess)
            return SourceMatch(best_guess, False)

        logger.warning("Could not find source for %s", record.build_time_path)
        return None

    def _from_source_server(self, record: SourceFileRecord, pdb_path: Path | None) -> Path | None:
        if self._source_server is None or pdb_path is None:
            return None

        logger.debug("Searching source server for %s", record.build_time_path)
        with source_server_slot(self._cancel):
            try:
                fetched = self._source_server.fetch_source(
                    pdb_path, record.build_time_path, self._source_cache_dir
                )
            except OperationCancelledError:
                raise
            except (OSError, SymlocateError) as e:
                logger.warning("Source server for %s failed: %s", record.build_time_path, e)
                return None

        if fetched is None or not fetched.is_file():
            logger.debug("Source server has no %s", record.build_time_path)
            return None
        return fetched
