"""An opened symbol file and the source files it references."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from symlocate.core.exceptions import SymlocateError
from symlocate.core.models import SourceFileRecord, SourceLocation, SymbolIdentity

if TYPE_CHECKING:
    from symlocate.core.source import SourceLocator
    from symlocate.providers.base import DebugSession

logger = logging.getLogger(__name__)


def clean_symbol_name(name: str) -> str:
    """Strip calling-convention decoration such as ``_func@12`` or ``@func@8``."""
    if "@" not in name:
        return name
    if name.startswith("@"):
        name = name[1:]
    if name.startswith("_"):
        name = name[1:]
    at = name.find("@")
    if at > 0:
        name = name[:at]
    return name


class SourceFile:
    """A source file referenced by a symbol file.

    Call :meth:`get_source_file` to find it on disk; afterwards
    :attr:`checksum_matches` says whether the returned file is the exact one.
    """

    def __init__(self, module: SymbolModule, record: SourceFileRecord) -> None:
        self._module = module
        self._record = record
        self._checksum_matches: bool | None = None

    @property
    def record(self) -> SourceFileRecord:
        return self._record

    @property
    def build_time_path(self) -> str:
        return self._record.build_time_path

    @property
    def has_checksum(self) -> bool:
        return self._record.has_checksum

    @property
    def checksum_matches(self) -> bool:
        """Whether the last :meth:`get_source_file` result matched the checksum."""
        if self._checksum_matches is None:
            raise SymlocateError("get_source_file() has not been called")
        return self._checksum_matches

    def get_source_file(self, require_checksum_match: bool = False) -> Path | None:
        """Locate this file. May contact a source server, so it can be slow."""
        match = self._module.locator.locate(
            self._record,
            pdb_path=self._module.pdb_path,
            exe_path=self._module.exe_path,
            require_checksum_match=require_checksum_match,
        )
        self._checksum_matches = match.checksum_matches if match else False
        return match.path if match else None


class SymbolModule:
    """A symbol file opened through a debug-info provider."""

    def __init__(
        self,
        pdb_path: Path,
        session: DebugSession,
        locator: SourceLocator,
        exe_path: Path | None = None,
    ) -> None:
        self._pdb_path = pdb_path
        self._session = session
        self._locator = locator
        # Used to search for sources next to the binary
        self.exe_path = exe_path

    @property
    def pdb_path(self) -> Path:
        return self._pdb_path

    @property
    def locator(self) -> SourceLocator:
        return self._locator

    @property
    def identity(self) -> SymbolIdentity:
        unique_id, revision = self._session.identity()
        return SymbolIdentity(self._pdb_path.name, unique_id, revision)

    def name_for_address(self, rva: int) -> str:
        """Symbol name covering ``rva``, or an empty string if there is none."""
        name = self._session.name_for_address(rva)
        if not name:
            logger.debug("Address 0x%x has no symbol name", rva)
            return ""
        return clean_symbol_name(name)

    def source_location_for_address(self, rva: int) -> SourceLocation | None:
        location = self._session.source_location_for_address(rva)
        if location is None:
            logger.debug("No lines for address 0x%x", rva)
        return location

    def source_files(self) -> list[SourceFile]:
        return [SourceFile(self, record) for record in self._session.source_files()]

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> SymbolModule:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()
