"""Progress notifications for symbol lookups.

The resolver and symbol-server client report what they are doing through a
:class:`SymbolNotification`. Tools decide how to render it; the default
implementation just logs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class SymbolNotification(Protocol):
    """Callbacks fired while locating and downloading files."""

    def found_symbol_in_cache(self, path: Path) -> None:
        """The file was already in a local cache; nothing was transferred."""
        ...

    def found_symbol_on_path(self, location: str) -> None:
        """The file was found at a search path location or remote server."""
        ...

    def probe_failed(self, location: str) -> None:
        """A location was tried and did not yield the file."""
        ...

    def download_progress(self, bytes_so_far: int) -> None:
        """Called after each chunk of a transfer is written."""
        ...

    def download_complete(self, path: Path, compressed: bool) -> None:
        """A transfer finished and the file is at ``path``."""
        ...

    def decompression_complete(self, path: Path) -> None:
        """A compressed download was expanded to ``path``."""
        ...


class LoggingNotification:
    """Notification sink that writes to the ``symlocate.core.notifications`` logger."""

    def found_symbol_in_cache(self, path: Path) -> None:
        logger.debug("Found in cache: %s", path)

    def found_symbol_on_path(self, location: str) -> None:
        logger.debug("Found at: %s", location)

    def probe_failed(self, location: str) -> None:
        logger.debug("Probe failed: %s", location)

    def download_progress(self, bytes_so_far: int) -> None:
        pass

    def download_complete(self, path: Path, compressed: bool) -> None:
        logger.debug("Downloaded %s%s", path, " (compressed)" if compressed else "")

    def decompression_complete(self, path: Path) -> None:
        logger.debug("Expanded %s", path)
