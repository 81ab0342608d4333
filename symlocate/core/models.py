"""Data models for Symlocate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PureWindowsPath
from uuid import UUID

logger = logging.getLogger(__name__)

WILDCARD_ID = UUID(int=0)


class IdentityMatch(Enum):
    """Outcome of comparing a candidate file's identity with the requested one."""

    EXACT = "exact"
    UNSAFE = "unsafe"
    MISMATCH = "mismatch"


class ChecksumAlgorithm(Enum):
    """Checksum kinds recorded for source files in a symbol file."""

    NONE = 0
    MD5 = 1


def simple_name(name: str) -> str:
    """Return the file name part of a Windows or POSIX style path."""
    return PureWindowsPath(name).name


def index_path(file_name: str, key: str) -> str:
    """Build a symbol-server index path: ``name/key/name``."""
    return f"{file_name}/{key}/{file_name}"


@dataclass(frozen=True)
class SymbolIdentity:
    """Identity of a symbol file: its name plus the GUID and age embedded in the binary.

    An all-zero ``unique_id`` is a wildcard that matches any file with the
    right name. Such matches are unsafe and go through the security gate.
    """

    name: str
    unique_id: UUID
    revision: int = 0

    def __post_init__(self) -> None:
        if self.revision < 0:
            raise ValueError(f"revision must be >= 0, got {self.revision}")

    @classmethod
    def parse(cls, name: str, unique_id: str, revision: int = 0) -> SymbolIdentity:
        """Create an identity from a GUID string (with or without dashes/braces)."""
        return cls(name=name, unique_id=UUID(unique_id.strip("{}")), revision=revision)

    @property
    def file_name(self) -> str:
        return simple_name(self.name)

    @property
    def is_wildcard(self) -> bool:
        return self.unique_id == WILDCARD_ID

    @property
    def index_key(self) -> str:
        """Lowercase hex GUID (no separators) followed by the hex age."""
        return f"{self.unique_id.hex}{self.revision:x}"

    @property
    def index_path(self) -> str:
        return index_path(self.file_name, self.index_key)

    def match(self, found_id: UUID, found_revision: int) -> IdentityMatch:
        """Compare the identity read from a candidate file with this one."""
        if found_id == self.unique_id and found_revision == self.revision:
            return IdentityMatch.EXACT
        if self.is_wildcard:
            return IdentityMatch.UNSAFE
        return IdentityMatch.MISMATCH

    def __str__(self) -> str:
        return f"{self.file_name} GUID {self.unique_id} Age {self.revision}"


@dataclass(frozen=True)
class ExecutableIdentity:
    """Identity of an executable image on a symbol server: PE timestamp and image size."""

    file_name: str
    build_timestamp: int
    image_size: int

    @property
    def is_wildcard(self) -> bool:
        return False

    @property
    def index_key(self) -> str:
        return f"{self.build_timestamp:x}{self.image_size:x}"

    @property
    def index_path(self) -> str:
        return index_path(simple_name(self.file_name), self.index_key)

    def __str__(self) -> str:
        return (
            f"{self.file_name} timestamp 0x{self.build_timestamp:x} "
            f"size 0x{self.image_size:x}"
        )


@dataclass(frozen=True)
class SourceFileRecord:
    """A source file referenced by a symbol file, with its build-time checksum."""

    build_time_path: str
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.NONE
    checksum: bytes | None = None

    @classmethod
    def from_raw(
        cls, build_time_path: str, checksum_type: int, checksum: bytes | None = None
    ) -> SourceFileRecord:
        """Create a record from the raw checksum marker a provider reports.

        0 means no checksum and 1 means MD5; anything else is not supported
        and is treated as no checksum.
        """
        try:
            algorithm = ChecksumAlgorithm(checksum_type)
        except ValueError:
            logger.warning(
                "Unknown checksum type %d for %s, ignoring checksum", checksum_type, build_time_path
            )
            algorithm = ChecksumAlgorithm.NONE
        if algorithm is ChecksumAlgorithm.NONE or not checksum:
            return cls(build_time_path)
        return cls(build_time_path, algorithm, bytes(checksum))

    @property
    def has_checksum(self) -> bool:
        return self.checksum is not None


@dataclass(frozen=True)
class SourceLocation:
    """A source file and line for a code address."""

    file: str
    line: int


@dataclass(frozen=True)
class SourceMatch:
    """Where a source file was found, and whether its checksum agreed."""

    path: Path
    checksum_matches: bool
