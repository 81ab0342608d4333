"""Tests for symbol and executable lookup along the search path."""

import logging
from pathlib import Path
from uuid import UUID

import pytest

from symlocate.core.config import SymbolConfig
from symlocate.core.exceptions import (
    DebugInfoError,
    OperationCancelledError,
    ProviderUnavailableError,
    SymlocateError,
)
from symlocate.core.models import (
    WILDCARD_ID,
    ExecutableIdentity,
    SourceFileRecord,
    SourceLocation,
    SymbolIdentity,
)
from symlocate.core.resolver import ResolverContext, SymbolResolver
from symlocate.core.search_path import SearchPath
from symlocate.core.security import trust_directories
from symlocate.providers.loader import UnavailableProvider

from conftest import FakeProvider, RecordingNotification, write_executable, write_symbol_file

GUID = UUID("6f1c4c1e-2a3b-4c5d-8e9f-0a1b2c3d4e5f")
OTHER_GUID = UUID("00000000-0000-0000-0000-000000000001")
IDENTITY = SymbolIdentity("app.pdb", GUID, 2)


@pytest.fixture
def local_dir(temp_dir: Path) -> Path:
    path = temp_dir / "local"
    path.mkdir()
    return path


def cache_path(temp_dir: Path, identity: SymbolIdentity = IDENTITY) -> Path:
    return temp_dir / "cache" / identity.index_path


class TestLocalDirectories:
    """Tests for plain directories on the search path."""

    def test_exact_match_is_cached(
        self,
        make_context,
        local_dir: Path,
        temp_dir: Path,
        provider: FakeProvider,
        notification: RecordingNotification,
    ) -> None:
        """Test that a matching file is accepted and copied into the cache."""
        found = write_symbol_file(local_dir / "app.pdb", GUID, 2)
        resolver = SymbolResolver(make_context(str(local_dir)))

        result = resolver.find_symbol_file(IDENTITY)

        assert result == cache_path(temp_dir)
        assert result.read_text() == found.read_text()
        assert ("found", str(found)) in notification.events
        assert all(session.closed for session in provider.sessions)

    def test_mismatch_rejected(
        self, make_context, local_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a file with another GUID or age is rejected and logged."""
        write_symbol_file(local_dir / "app.pdb", GUID, 3)
        resolver = SymbolResolver(make_context(str(local_dir)))

        with caplog.at_level(logging.INFO):
            assert resolver.find_symbol_file(IDENTITY) is None

        assert "rejecting" in caplog.text
        assert "Failed to find symbol file" in caplog.text

    def test_unreadable_file_rejected(self, make_context, local_dir: Path) -> None:
        """Test that a file the provider cannot read is treated as a mismatch."""
        (local_dir / "app.pdb").write_bytes(b"\x00garbage")
        resolver = SymbolResolver(make_context(str(local_dir)))

        assert resolver.find_symbol_file(IDENTITY) is None

    def test_first_match_wins(self, make_context, temp_dir: Path) -> None:
        """Test that the earliest matching element decides the result."""
        first = write_symbol_file(temp_dir / "first" / "app.pdb", GUID, 2)
        second = write_symbol_file(temp_dir / "second" / "app.pdb", GUID, 2)
        second.write_text(f"{GUID.hex}:2\n")
        server = temp_dir / "server"
        write_symbol_file(server / IDENTITY.index_path, GUID, 2)
        server_cache = temp_dir / "server-cache"
        resolver = SymbolResolver(
            make_context(f"{first.parent};{second.parent};srv*{server_cache}*{server}")
        )

        result = resolver.find_symbol_file(IDENTITY)

        assert result is not None
        assert result.read_text() == first.read_text()
        assert not server_cache.exists()

    def test_skips_mismatch_then_matches(self, make_context, temp_dir: Path) -> None:
        """Test that a rejected candidate does not stop the search."""
        write_symbol_file(temp_dir / "a" / "app.pdb", OTHER_GUID, 2)
        write_symbol_file(temp_dir / "b" / "app.pdb", GUID, 2)
        resolver = SymbolResolver(make_context(f"{temp_dir / 'a'};{temp_dir / 'b'}"))

        assert resolver.find_symbol_file(IDENTITY) == cache_path(temp_dir)

    def test_extension_subdirectory(self, make_context, local_dir: Path, temp_dir: Path) -> None:
        """Test that the dll subdirectory of a local element is searched."""
        write_symbol_file(local_dir / "dll" / "app.pdb", GUID, 2)
        resolver = SymbolResolver(make_context(str(local_dir)))

        assert resolver.find_symbol_file(IDENTITY) == cache_path(temp_dir)

    def test_wildcard_requires_trust(self, make_context, local_dir: Path) -> None:
        """Test that wildcard matches fail closed without a security policy."""
        write_symbol_file(local_dir / "app.pdb", GUID, 5)
        wildcard = SymbolIdentity("app.pdb", WILDCARD_ID, 0)

        untrusted = SymbolResolver(make_context(str(local_dir)))
        assert untrusted.find_symbol_file(wildcard) is None

        trusted = SymbolResolver(
            make_context(str(local_dir), security_check=trust_directories([local_dir]))
        )
        assert trusted.find_symbol_file(wildcard) == local_dir / "app.pdb"

    def test_wildcard_rejected_by_policy(self, make_context, local_dir: Path) -> None:
        write_symbol_file(local_dir / "app.pdb", GUID, 5)
        wildcard = SymbolIdentity("app.pdb", WILDCARD_ID, 0)
        resolver = SymbolResolver(make_context(str(local_dir), security_check=lambda p: False))

        assert resolver.find_symbol_file(wildcard) is None


class TestSymbolServers:
    """Tests for srv* elements."""

    def test_share_server(self, make_context, temp_dir: Path) -> None:
        """Test that a share server is fetched into its own cache, then normalized."""
        server = temp_dir / "server"
        write_symbol_file(server / IDENTITY.index_path, GUID, 2)
        own_cache = temp_dir / "server-cache"
        resolver = SymbolResolver(make_context(f"srv*{own_cache}*{server}"))

        result = resolver.find_symbol_file(IDENTITY)

        assert (own_cache / IDENTITY.index_path).is_file()
        assert result == cache_path(temp_dir)

    def test_cache_only(self, make_context, temp_dir: Path) -> None:
        """Test that cache-only mode never contacts the server."""
        server = temp_dir / "server"
        write_symbol_file(server / IDENTITY.index_path, GUID, 2)
        spec = f"srv*{server}"

        offline = SymbolResolver(make_context(spec, cache_only=True))
        assert offline.find_symbol_file(IDENTITY) is None
        assert not cache_path(temp_dir).exists()

        online = SymbolResolver(make_context(spec))
        assert online.find_symbol_file(IDENTITY) == cache_path(temp_dir)

        offline = SymbolResolver(make_context(spec, cache_only=True))
        assert offline.find_symbol_file(IDENTITY) == cache_path(temp_dir)

    def test_server_files_not_identity_checked(
        self, make_context, temp_dir: Path, provider: FakeProvider
    ) -> None:
        """Test that files from a server are trusted by their index path."""
        server = temp_dir / "server"
        server_file = server / IDENTITY.index_path
        server_file.parent.mkdir(parents=True)
        server_file.write_bytes(b"real pdb bytes")
        resolver = SymbolResolver(make_context(f"srv*{server}"))

        result = resolver.find_symbol_file(IDENTITY)

        assert result is not None
        assert result.read_bytes() == b"real pdb bytes"
        assert provider.opened == []

    def test_stray_file_in_server_cache(self, make_context, temp_dir: Path) -> None:
        """Test that a plain file where the name directory belongs does not block a fetch."""
        server = temp_dir / "server"
        write_symbol_file(server / IDENTITY.index_path, GUID, 2)
        stray = temp_dir / "cache" / "app.pdb"
        stray.parent.mkdir()
        stray.write_text("stray")
        resolver = SymbolResolver(make_context(f"srv*{temp_dir / 'cache'}*{server}"))

        result = resolver.find_symbol_file(IDENTITY)

        assert result == cache_path(temp_dir)
        assert result.read_text() == f"{GUID.hex}:2"
        assert stray.is_dir()

    def test_allow_remote_per_call(self, make_context, temp_dir: Path) -> None:
        """Test that a call can override the configured cache-only mode."""
        server = temp_dir / "server"
        write_symbol_file(server / IDENTITY.index_path, GUID, 2)
        offline = SymbolResolver(make_context(f"srv*{server}", cache_only=True))

        assert offline.find_symbol_file(IDENTITY) is None
        assert offline.find_symbol_file(IDENTITY, allow_remote=True) == cache_path(temp_dir)

        online = SymbolResolver(make_context(f"srv*{temp_dir / 'other'}*{server}"))
        assert online.find_symbol_file(IDENTITY, allow_remote=False) is None


class TestUnsafeLocations:
    """Tests for the fallbacks tried after the search path."""

    def test_next_to_dll(self, make_context, temp_dir: Path) -> None:
        """Test that a PDB beside the binary needs the security check."""
        bin_dir = temp_dir / "bin"
        write_symbol_file(bin_dir / "app.pdb", GUID, 2)
        dll = bin_dir / "app.dll"
        dll.write_bytes(b"MZ")

        assert SymbolResolver(make_context("")).find_symbol_file(IDENTITY, dll) is None

        trusted = SymbolResolver(make_context("", security_check=trust_directories([bin_dir])))
        assert trusted.find_symbol_file(IDENTITY, dll) == cache_path(temp_dir)

    def test_symbols_pri_layout(self, make_context, temp_dir: Path) -> None:
        """Test the symbols.pri/retail/dll layout next to the binary."""
        bin_dir = temp_dir / "bin"
        bin_dir.mkdir()
        write_symbol_file(bin_dir / "symbols.pri" / "retail" / "dll" / "app.pdb", GUID, 2)
        dll = bin_dir / "app.dll"
        dll.write_bytes(b"MZ")
        resolver = SymbolResolver(make_context("", security_check=lambda p: True))

        assert resolver.find_symbol_file(IDENTITY, dll) == cache_path(temp_dir)

    def test_literal_path(self, make_context, temp_dir: Path) -> None:
        """Test that a full build path in the name is probed as is."""
        build = write_symbol_file(temp_dir / "build" / "out" / "app.pdb", GUID, 2)
        identity = SymbolIdentity(str(build), GUID, 2)
        resolver = SymbolResolver(make_context("", security_check=lambda p: True))

        assert resolver.find_symbol_file(identity) == cache_path(temp_dir, identity)

    def test_mismatch_next_to_dll(self, make_context, temp_dir: Path) -> None:
        """Test that the security check does not override an identity mismatch."""
        bin_dir = temp_dir / "bin"
        write_symbol_file(bin_dir / "app.pdb", OTHER_GUID, 2)
        resolver = SymbolResolver(make_context("", security_check=lambda p: True))

        assert resolver.find_symbol_file(IDENTITY, bin_dir / "app.dll") is None

    def test_not_tried_in_cache_only(self, make_context, temp_dir: Path) -> None:
        bin_dir = temp_dir / "bin"
        write_symbol_file(bin_dir / "app.pdb", GUID, 2)
        resolver = SymbolResolver(
            make_context("", security_check=lambda p: True, cache_only=True)
        )

        assert resolver.find_symbol_file(IDENTITY, bin_dir / "app.dll") is None


class TestExecutables:
    """Tests for executable lookup."""

    def test_local_weak_match(self, make_context, local_dir: Path, temp_dir: Path) -> None:
        """Test that local executables are accepted on name alone by default."""
        write_executable(local_dir / "app.dll", 1, 1)
        identity = ExecutableIdentity("app.dll", 0x5F00, 0x3000)
        resolver = SymbolResolver(make_context(str(local_dir)))

        result = resolver.find_executable_file(identity)

        assert result == temp_dir / "cache" / identity.index_path

    def test_local_strict_match(self, make_context, local_dir: Path) -> None:
        """Test that strict matching compares timestamp and size."""
        write_executable(local_dir / "app.dll", 1, 1)
        resolver = SymbolResolver(make_context(str(local_dir), strict_executable_match=True))

        assert resolver.find_executable_file(ExecutableIdentity("app.dll", 0x5F00, 0x3000)) is None
        assert resolver.find_executable_file(ExecutableIdentity("app.dll", 1, 1)) is not None

    def test_server(self, make_context, temp_dir: Path) -> None:
        identity = ExecutableIdentity("app.dll", 0x5F00, 0x3000)
        server = temp_dir / "server"
        write_executable(server / identity.index_path, 0x5F00, 0x3000)
        resolver = SymbolResolver(make_context(f"srv*{server}"))

        assert resolver.find_executable_file(identity) == temp_dir / "cache" / identity.index_path

    def test_not_found(self, make_context, local_dir: Path) -> None:
        resolver = SymbolResolver(make_context(str(local_dir)))
        assert resolver.find_executable_file(ExecutableIdentity("app.dll", 1, 1)) is None


class TestContext:
    """Tests for provider handling and cancellation."""

    def test_provider_unavailable_is_remembered(self, temp_dir: Path, local_dir: Path) -> None:
        """Test that an unavailable provider fails every later call without retrying."""
        write_symbol_file(local_dir / "app.pdb", GUID, 2)
        calls: list[Path] = []

        class BrokenProvider(UnavailableProvider):
            def open(self, path: Path):
                calls.append(path)
                return super().open(path)

        config = SymbolConfig(symbol_path=SearchPath.parse(str(local_dir), temp_dir / "cache"))
        with ResolverContext(config, BrokenProvider("native library missing")) as context:
            resolver = SymbolResolver(context)
            with pytest.raises(ProviderUnavailableError, match="native library missing"):
                resolver.find_symbol_file(IDENTITY)
            with pytest.raises(ProviderUnavailableError):
                resolver.find_symbol_file(IDENTITY)

        assert len(calls) == 1

    def test_no_provider(self, temp_dir: Path, local_dir: Path) -> None:
        write_symbol_file(local_dir / "app.pdb", GUID, 2)
        config = SymbolConfig(symbol_path=SearchPath.parse(str(local_dir), temp_dir / "cache"))
        with ResolverContext(config) as context:
            with pytest.raises(ProviderUnavailableError):
                SymbolResolver(context).find_symbol_file(IDENTITY)

    def test_cancel(self, make_context, local_dir: Path) -> None:
        """Test that a cancelled context stops before probing."""
        write_symbol_file(local_dir / "app.pdb", GUID, 2)
        context = make_context(str(local_dir))
        context.cancel()

        with pytest.raises(OperationCancelledError):
            SymbolResolver(context).find_symbol_file(IDENTITY)

    def test_reset_cancel(self, make_context, local_dir: Path, temp_dir: Path) -> None:
        """Test that a context can be used again after a cancelled lookup."""
        write_symbol_file(local_dir / "app.pdb", GUID, 2)
        context = make_context(str(local_dir))
        resolver = SymbolResolver(context)
        context.cancel()

        with pytest.raises(OperationCancelledError):
            resolver.find_symbol_file(IDENTITY)

        context.reset_cancel()
        assert resolver.find_symbol_file(IDENTITY) == cache_path(temp_dir)

    def test_close_closes_provider(self, make_context, provider: FakeProvider) -> None:
        context = make_context("")
        context.close()
        assert provider.closed


class TestSymbolModule:
    """Tests for opened symbol files."""

    def test_addresses(self, make_context, local_dir: Path, provider: FakeProvider) -> None:
        """Test name and line lookups through the provider."""
        pdb = write_symbol_file(local_dir / "app.pdb", GUID, 2)
        provider.names = {0x1000: "_WinMain@16", 0x2000: "helper"}
        provider.lines = {0x1000: SourceLocation("c:\\src\\main.c", 42)}
        resolver = SymbolResolver(make_context(str(local_dir)))

        with resolver.open_symbol_file(pdb) as module:
            assert module.identity == IDENTITY
            assert module.name_for_address(0x1000) == "WinMain"
            assert module.name_for_address(0x2000) == "helper"
            assert module.name_for_address(0x3000) == ""
            assert module.source_location_for_address(0x1000) == SourceLocation(
                "c:\\src\\main.c", 42
            )
            assert module.source_location_for_address(0x3000) is None

        assert provider.sessions[-1].closed

    def test_open_unreadable(self, make_context, local_dir: Path) -> None:
        bad = local_dir / "bad.pdb"
        bad.write_bytes(b"\xff")
        resolver = SymbolResolver(make_context(str(local_dir)))

        with pytest.raises(DebugInfoError):
            resolver.open_symbol_file(bad)

    def test_source_files(self, make_context, local_dir: Path, provider: FakeProvider) -> None:
        """Test that source files are located relative to the executable."""
        pdb = write_symbol_file(local_dir / "app.pdb", GUID, 2)
        exe = local_dir / "bin" / "app.exe"
        exe.parent.mkdir()
        exe.write_bytes(b"MZ")
        source = local_dir / "src" / "main.c"
        source.parent.mkdir()
        source.write_text("int main() { return 0; }\n")
        provider.records = [
            SourceFileRecord("z:\\build\\src\\main.c"),
            SourceFileRecord("z:\\build\\src\\gone.c"),
        ]
        resolver = SymbolResolver(make_context(str(local_dir)))

        with resolver.open_symbol_file(pdb, exe_path=exe) as module:
            found, missing = module.source_files()

            with pytest.raises(SymlocateError):
                _ = found.checksum_matches

            assert found.get_source_file() == source
            assert found.checksum_matches
            assert missing.get_source_file() is None
            assert not missing.checksum_matches
