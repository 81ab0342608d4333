"""Shared fixtures: a fake debug-info provider and helpers for building symbol trees."""

import tempfile
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from uuid import UUID

import pytest

from symlocate.core.config import SymbolConfig
from symlocate.core.exceptions import DebugInfoError, DecompressionError
from symlocate.core.models import ExecutableIdentity, SourceFileRecord, SourceLocation
from symlocate.core.resolver import ResolverContext
from symlocate.core.search_path import SearchPath

CAB_MAGIC = b"CAB:"


def write_symbol_file(path: Path, unique_id: UUID, revision: int) -> Path:
    """Write a fake symbol file that FakeProvider reads as (unique_id, revision)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{unique_id.hex}:{revision}")
    return path


def write_executable(path: Path, timestamp: int, size: int) -> Path:
    """Write a fake executable whose header FakeProvider reads as (timestamp, size)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"exe:{timestamp}:{size}")
    return path


def write_compressed(path: Path, payload: bytes) -> Path:
    """Write a fake cabinet that FakeDecompressor expands to ``payload``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(CAB_MAGIC + payload)
    return path


class FakeSession:
    """Symbol file opened by FakeProvider."""

    def __init__(
        self,
        path: Path,
        names: dict[int, str],
        lines: dict[int, SourceLocation],
        records: Sequence[SourceFileRecord],
    ) -> None:
        try:
            guid_hex, revision = path.read_text().split(":")
            self._identity = (UUID(hex=guid_hex), int(revision))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise DebugInfoError(f"{path} is not a symbol file") from e
        self._names = names
        self._lines = lines
        self._records = records
        self.closed = False

    def identity(self) -> tuple[UUID, int]:
        return self._identity

    def name_for_address(self, rva: int) -> str | None:
        return self._names.get(rva)

    def source_location_for_address(self, rva: int) -> SourceLocation | None:
        return self._lines.get(rva)

    def source_files(self) -> Sequence[SourceFileRecord]:
        return list(self._records)

    def close(self) -> None:
        self.closed = True


class FakeProvider:
    """Debug-info provider that reads identities from small text files."""

    def __init__(self) -> None:
        self.names: dict[int, str] = {}
        self.lines: dict[int, SourceLocation] = {}
        self.records: list[SourceFileRecord] = []
        self.opened: list[Path] = []
        self.sessions: list[FakeSession] = []
        self.closed = False

    def open(self, path: Path) -> FakeSession:
        self.opened.append(path)
        session = FakeSession(path, self.names, self.lines, self.records)
        self.sessions.append(session)
        return session

    def executable_identity(self, path: Path) -> ExecutableIdentity:
        try:
            _, timestamp, size = path.read_text().split(":")
            return ExecutableIdentity(path.name, int(timestamp), int(size))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise DebugInfoError(f"{path} is not an executable") from e

    def close(self) -> None:
        self.closed = True


class FakeDecompressor:
    """Expands files written by write_compressed."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def __call__(self, compressed: Path, target: Path) -> None:
        self.calls.append(compressed)
        data = compressed.read_bytes()
        if not data.startswith(CAB_MAGIC):
            raise DecompressionError(f"{compressed} is not a cabinet")
        target.write_bytes(data[len(CAB_MAGIC) :])


class RecordingNotification:
    """Notification sink that remembers every event."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def found_symbol_in_cache(self, path: Path) -> None:
        self.events.append(("cache", path))

    def found_symbol_on_path(self, location: str) -> None:
        self.events.append(("found", location))

    def probe_failed(self, location: str) -> None:
        self.events.append(("failed", location))

    def download_progress(self, bytes_so_far: int) -> None:
        self.events.append(("progress", bytes_so_far))

    def download_complete(self, path: Path, compressed: bool) -> None:
        self.events.append(("complete", path, compressed))

    def decompression_complete(self, path: Path) -> None:
        self.events.append(("expanded", path))

    def kinds(self) -> list[str]:
        return [event[0] for event in self.events]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def decompressor() -> FakeDecompressor:
    return FakeDecompressor()


@pytest.fixture
def notification() -> RecordingNotification:
    return RecordingNotification()


@pytest.fixture
def make_context(
    temp_dir: Path,
    provider: FakeProvider,
    decompressor: FakeDecompressor,
    notification: RecordingNotification,
) -> Iterator[Callable[..., ResolverContext]]:
    """Factory for resolver contexts whose caches live under ``temp_dir/cache``."""
    contexts: list[ResolverContext] = []

    def factory(
        symbol_path: str,
        security_check: Callable[[Path], bool] | None = None,
        source_server: object | None = None,
        **overrides: object,
    ) -> ResolverContext:
        config = SymbolConfig(
            symbol_path=SearchPath.parse(symbol_path, temp_dir / "cache"),
            source_cache_dir=temp_dir / "srccache",
            **overrides,
        )
        context = ResolverContext(
            config,
            provider,
            source_server=source_server,
            security_check=security_check,
            notification=notification,
            decompressor=decompressor,
        )
        contexts.append(context)
        return context

    yield factory
    for context in contexts:
        context.close()


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep loopback HTTP traffic away from any proxy configured in the environment."""
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
