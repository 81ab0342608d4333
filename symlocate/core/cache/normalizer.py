"""Copies located files into the local cache using symbol-server layout."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from symlocate.core.cache.files import copy_file_atomically, remove_stray_file, same_file
from symlocate.core.exceptions import CacheWriteError
from symlocate.core.models import ExecutableIdentity, SymbolIdentity, simple_name

logger = logging.getLogger(__name__)

Identity = SymbolIdentity | ExecutableIdentity


class CacheNormalizer:
    """Places located files at ``cache/name/key/name`` (or ``cache/name`` when unidentified).

    Files with a wildcard identity are only cached when ``cache_unsafe_files``
    is set. A destination whose timestamp matches the source is left alone.
    """

    def __init__(
        self,
        cache_dir: Path,
        cache_unsafe_files: bool = False,
        chunk_size: int = 8192,
        cancel: threading.Event | None = None,
    ) -> None:
        self._cache_dir = cache_dir
        self._cache_unsafe_files = cache_unsafe_files
        self._chunk_size = chunk_size
        self._cancel = cancel

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def target_path(self, identity: Identity) -> Path:
        """Deterministic cache location for ``identity``."""
        file_name = simple_name(identity.file_name)
        if identity.is_wildcard:
            return self._cache_dir / file_name
        return self._cache_dir / file_name / identity.index_key / file_name

    def normalize(self, found_path: Path, identity: Identity) -> Path:
        """Best-effort :meth:`store`: on failure log and return ``found_path``."""
        try:
            return self.store(found_path, identity)
        except CacheWriteError as e:
            logger.warning("Error trying to update local cache: %s", e)
            return found_path

    def store(self, found_path: Path, identity: Identity) -> Path:
        """Ensure ``found_path`` is resident in the cache and return the cached path.

        Raises:
            CacheWriteError: If the cache entry could not be created.
        """
        try:
            return self._store(found_path, identity)
        except OSError as e:
            raise CacheWriteError(f"Could not cache {found_path}: {e}") from e

    def _store(self, found_path: Path, identity: Identity) -> Path:
        file_name = simple_name(identity.file_name)

        if not identity.is_wildcard:
            prefix = self._cache_dir / file_name
            # A plain file may occupy the directory name the layout needs
            if prefix.exists() and not prefix.is_dir():
                if same_file(found_path, prefix):
                    return found_path
                remove_stray_file(prefix)
        elif not self._cache_unsafe_files:
            return found_path

        local_path = self.target_path(identity)
        if local_path.exists():
            if same_file(found_path, local_path):
                return local_path
            if local_path.stat().st_mtime_ns == found_path.stat().st_mtime_ns:
                return local_path
            logger.warning("Overwriting existing file %s.", local_path)

        logger.info("Copying %s to local cache %s", found_path, local_path)
        copy_file_atomically(found_path, local_path, self._chunk_size, cancel=self._cancel)
        return local_path
