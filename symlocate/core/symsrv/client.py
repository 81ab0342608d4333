"""Symbol-server client: direct, compressed and ``file.ptr`` fetch tiers."""

from __future__ import annotations

import logging
import os
import posixpath
import threading
from pathlib import Path

from symlocate.core.cache.files import (
    PARTIAL_SUFFIX,
    copy_file_atomically,
    make_room_for,
    write_atomically,
)
from symlocate.core.exceptions import DecompressionError, TransportError
from symlocate.core.notifications import LoggingNotification, SymbolNotification
from symlocate.core.symsrv.decompress import Decompressor, expand_cabinet
from symlocate.core.symsrv.pointer import FILE_PTR_NAME, parse_file_pointer
from symlocate.core.symsrv.transport import (
    HttpTransport,
    ShareTransport,
    Transport,
    is_http_root,
)

logger = logging.getLogger(__name__)


def compressed_index_path(index_path: str) -> str:
    """Symbol servers store compressed files with the last character replaced by ``_``."""
    return index_path[:-1] + "_"


def pointer_index_path(index_path: str) -> str:
    return posixpath.join(posixpath.dirname(index_path.replace("\\", "/")), FILE_PTR_NAME)


class SymbolServerClient:
    """Fetches files from symbol servers into a local cache directory.

    Each fetch tries, in order:
    1. ``root/index_path`` directly (skipped when already in the cache)
    2. the compressed ``root/index_pat_`` variant, expanded in the cache
    3. ``file.ptr`` in the same directory, redirecting to another file

    A failure at any tier is logged and treated as a miss for that tier.
    """

    def __init__(
        self,
        notification: SymbolNotification | None = None,
        decompressor: Decompressor = expand_cabinet,
        chunk_size: int = 8192,
        http_timeout: float = 30.0,
        http_retries: int = 0,
        cancel: threading.Event | None = None,
    ) -> None:
        self._notification = notification or LoggingNotification()
        self._decompressor = decompressor
        self._chunk_size = chunk_size
        self._cancel = cancel
        self._share = ShareTransport(chunk_size)
        self._http = HttpTransport(http_timeout, http_retries, chunk_size)

    def _transport_for(self, remote_root: str) -> Transport:
        return self._http if is_http_root(remote_root) else self._share

    def fetch(self, remote_root: str, index_path: str, cache_dir: Path) -> Path | None:
        """Get ``index_path`` from ``remote_root`` into ``cache_dir``.

        Returns:
            The local path ``cache_dir/index_path``, or None if no tier found it.
        """
        if not remote_root:
            return None

        found = self._fetch_physical(remote_root, index_path, cache_dir)
        if found is not None:
            return found

        target = cache_dir / index_path

        compressed = self._fetch_physical(
            remote_root, compressed_index_path(index_path), cache_dir
        )
        if compressed is not None:
            expanded = self._expand(compressed, target)
            if expanded is not None:
                return expanded

        return self._follow_pointer(remote_root, index_path, cache_dir, target)

    def probe_cache(self, index_path: str, cache_dir: Path) -> Path | None:
        """Look for ``index_path`` in ``cache_dir`` only, without contacting the server."""
        target = cache_dir / index_path
        if target.is_file():
            self._notification.found_symbol_in_cache(target)
            return target
        self._notification.probe_failed(str(target))
        return None

    def close(self) -> None:
        self._http.close()
        self._share.close()

    def _fetch_physical(self, remote_root: str, index_path: str, cache_dir: Path) -> Path | None:
        """Copy exactly ``remote_root/index_path`` to ``cache_dir/index_path``."""
        dest = cache_dir / index_path
        if dest.is_file():
            self._notification.found_symbol_in_cache(dest)
            return dest

        transport = self._transport_for(remote_root)
        location = transport.location(remote_root, index_path)
        logger.debug("Probing %s", location)
        try:
            with transport.open(remote_root, index_path) as chunks:
                self._notification.found_symbol_on_path(location)
                make_room_for(dest, cache_dir)
                write_atomically(dest, chunks, self._notification.download_progress, self._cancel)
        except (TransportError, OSError) as e:
            self._notification.probe_failed(location)
            logger.info("Probe of %s failed: %s", location, e)
            return None

        logger.info("Copied %s to %s", location, dest)
        self._notification.download_complete(dest, dest.name.endswith("_"))
        return dest

    def _expand(self, compressed: Path, target: Path) -> Path | None:
        logger.info("Expanding %s to %s", compressed, target)
        tmp = target.with_name(f".{target.name}.expand{PARTIAL_SUFFIX}")
        try:
            self._decompressor(compressed, tmp)
            os.replace(tmp, target)
        except (DecompressionError, OSError) as e:
            logger.warning("Could not expand %s: %s", compressed, e)
            tmp.unlink(missing_ok=True)
            return None
        finally:
            compressed.unlink(missing_ok=True)

        self._notification.decompression_complete(target)
        return target

    def _follow_pointer(
        self, remote_root: str, index_path: str, cache_dir: Path, target: Path
    ) -> Path | None:
        ptr_file = self._fetch_physical(remote_root, pointer_index_path(index_path), cache_dir)
        if ptr_file is None:
            return None

        try:
            text = ptr_file.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Cannot read %s: %s", ptr_file, e)
            return None
        finally:
            ptr_file.unlink(missing_ok=True)

        pointer = parse_file_pointer(text)
        if pointer.message is not None:
            logger.warning("Symbol server has no file for %s: %s", index_path, pointer.message)
            return None
        if pointer.path is None or not Path(pointer.path).is_file():
            logger.warning("Error resolving file.ptr: content '%s'", text.strip())
            return None

        source = Path(pointer.path)
        logger.info("Copying %s to %s", source, target)
        self._notification.found_symbol_on_path(str(source))
        try:
            copy_file_atomically(
                source, target, self._chunk_size, self._notification.download_progress, self._cancel
            )
        except OSError as e:
            self._notification.probe_failed(str(source))
            logger.warning("Copying %s failed: %s", source, e)
            return None

        self._notification.download_complete(target, False)
        return target
