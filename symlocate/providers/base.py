"""Protocols for debug-info and source-server providers."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from symlocate.core.models import ExecutableIdentity, SourceFileRecord, SourceLocation


class DebugSession(Protocol):
    """An opened symbol file."""

    def identity(self) -> tuple[UUID, int]:
        """Return the (GUID, age) embedded in the symbol file."""
        ...

    def name_for_address(self, rva: int) -> str | None:
        """Return the symbol name covering a relative virtual address."""
        ...

    def source_location_for_address(self, rva: int) -> SourceLocation | None:
        """Return the source file and line for a relative virtual address."""
        ...

    def source_files(self) -> Sequence[SourceFileRecord]:
        """Return every source file the symbol file references."""
        ...

    def close(self) -> None:
        ...


class DebugInfoProvider(Protocol):
    """Opens symbol files. Symlocate never parses symbol formats itself."""

    def open(self, path: Path) -> DebugSession:
        """Open a symbol file.

        Raises:
            DebugInfoError: The file could not be read.
            ProviderUnavailableError: The provider cannot work at all.
        """
        ...

    def executable_identity(self, path: Path) -> ExecutableIdentity:
        """Read the timestamp and image size from an executable's header."""
        ...


class SourceServerProvider(Protocol):
    """Reconstructs source files from the source-server data in a symbol file."""

    def fetch_source(self, pdb_path: Path, build_time_path: str, cache_dir: Path) -> Path | None:
        """Fetch ``build_time_path`` into ``cache_dir``; None if the server has no entry."""
        ...
