"""Top-level lookup of symbol files and executables along the search path."""

from __future__ import annotations

import logging
import threading
from contextlib import closing
from pathlib import Path
from typing import TYPE_CHECKING

from symlocate.core.cache import CacheNormalizer, check_cancelled
from symlocate.core.config import SymbolConfig
from symlocate.core.exceptions import DebugInfoError, ProviderUnavailableError
from symlocate.core.models import (
    ExecutableIdentity,
    IdentityMatch,
    SourceFileRecord,
    SourceMatch,
    SymbolIdentity,
    simple_name,
)
from symlocate.core.modules import SymbolModule
from symlocate.core.notifications import LoggingNotification, SymbolNotification
from symlocate.core.search_path import SearchPath, ServerElement
from symlocate.core.security import SecurityCheck, is_trusted
from symlocate.core.source import SourceLocator
from symlocate.core.symsrv import Decompressor, SymbolServerClient, expand_cabinet

if TYPE_CHECKING:
    from symlocate.providers.base import DebugInfoProvider, DebugSession, SourceServerProvider

logger = logging.getLogger(__name__)


class ResolverContext:
    """Configuration and collaborators shared by every lookup.

    Owns the search path, caches, trust policy, notification sink and the
    debug-info provider. Use as a context manager, or call :meth:`close`.
    """

    def __init__(
        self,
        config: SymbolConfig | None = None,
        provider: DebugInfoProvider | None = None,
        source_server: SourceServerProvider | None = None,
        security_check: SecurityCheck | None = None,
        notification: SymbolNotification | None = None,
        decompressor: Decompressor = expand_cabinet,
    ) -> None:
        self.config = config if config is not None else SymbolConfig.from_environment()
        self.security_check = security_check
        self.notification = notification or LoggingNotification()
        self.cancel_event = threading.Event()

        self._provider = provider
        self._provider_lock = threading.Lock()
        self._provider_error: ProviderUnavailableError | None = None

        self.search_path: SearchPath = self.config.symbol_path.with_extension_directories()
        self.client = SymbolServerClient(
            self.notification,
            decompressor,
            chunk_size=self.config.chunk_size,
            http_timeout=self.config.http_timeout,
            http_retries=self.config.http_retries,
            cancel=self.cancel_event,
        )
        self.normalizer = CacheNormalizer(
            self.config.cache_dir,
            self.config.cache_unsafe_files,
            self.config.chunk_size,
            self.cancel_event,
        )
        self.locator = SourceLocator(
            self.config.source_path,
            self.config.source_cache_dir,
            source_server,
            self.cancel_event,
        )
        logger.debug("Created resolver context with search path %s", self.search_path)

    def open_session(self, path: Path) -> DebugSession:
        """Open ``path`` with the debug-info provider.

        Once the provider has reported itself unavailable, every later call
        fails immediately with the same error.
        """
        with self._provider_lock:
            if self._provider_error is not None:
                raise self._provider_error
            try:
                if self._provider is None:
                    raise ProviderUnavailableError("No debug-info provider is configured")
                return self._provider.open(path)
            except ProviderUnavailableError as e:
                logger.error("Debug-info provider unavailable: %s", e)
                self._provider_error = e
                raise

    def read_executable_identity(self, path: Path) -> ExecutableIdentity:
        with self._provider_lock:
            if self._provider_error is not None:
                raise self._provider_error
            try:
                if self._provider is None:
                    raise ProviderUnavailableError("No debug-info provider is configured")
                return self._provider.executable_identity(path)
            except ProviderUnavailableError as e:
                logger.error("Debug-info provider unavailable: %s", e)
                self._provider_error = e
                raise

    def cancel(self) -> None:
        """Ask in-progress lookups and downloads to stop at the next chunk."""
        self.cancel_event.set()

    def reset_cancel(self) -> None:
        """Clear a previous :meth:`cancel` so the context can be used again."""
        self.cancel_event.clear()

    def close(self) -> None:
        self.client.close()
        close_provider = getattr(self._provider, "close", None)
        if close_provider is not None:
            close_provider()
        self._provider = None

    def __enter__(self) -> ResolverContext:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


class SymbolResolver:
    """Finds symbol files, executables and sources for a :class:`ResolverContext`."""

    def __init__(self, context: ResolverContext) -> None:
        self._context = context
        self._notification = context.notification

    @property
    def context(self) -> ResolverContext:
        return self._context

    def find_symbol_file(
        self,
        identity: SymbolIdentity,
        dll_path: Path | None = None,
        file_version: str = "",
        allow_remote: bool | None = None,
    ) -> Path | None:
        """Find the symbol file for ``identity`` and return its path in the local cache.

        Search path elements are tried in order and the first match wins.
        If nothing matches (and remote lookups are allowed) the directory of
        ``dll_path`` and ``identity.name`` as a literal path are tried; files
        found there must pass the security check.

        Args:
            identity: Name, GUID and age of the symbol file
            dll_path: The binary the symbol file belongs to, if known
            file_version: Only used in log messages
            allow_remote: Override the configured cache-only mode for this call

        Returns:
            Local path of the symbol file, or None if it could not be found
        """
        allow_remote = self._allow_remote(allow_remote)

        found = self._search(identity, allow_remote)
        if found is None and allow_remote:
            found = self._probe_unsafe_locations(identity, dll_path)

        if found is None:
            where = "" if allow_remote else " in local cache"
            logger.warning(
                "Failed to find symbol file %s%s. Version %s", identity, where, file_version
            )
            return None

        logger.info("Successfully found %s at %s. Version %s", identity, found, file_version)
        return self._context.normalizer.normalize(found.absolute(), identity)

    def find_executable_file(
        self, identity: ExecutableIdentity, allow_remote: bool | None = None
    ) -> Path | None:
        """Find an executable image by its build timestamp and image size.

        Files found in local directories are accepted on name alone unless
        ``strict_executable_match`` is configured.
        """
        allow_remote = self._allow_remote(allow_remote)
        file_name = simple_name(identity.file_name)

        found: Path | None = None
        for element in self._context.search_path:
            check_cancelled(self._context.cancel_event)
            if isinstance(element, ServerElement):
                found = self._from_server(element, identity.index_path, allow_remote)
            else:
                candidate = element.directory / file_name
                logger.debug("Probing file %s", candidate)
                if candidate.is_file() and self._executable_matches(candidate, identity):
                    self._notification.found_symbol_on_path(str(candidate))
                    found = candidate
                else:
                    self._notification.probe_failed(str(candidate))
            if found is not None:
                break

        if found is None:
            logger.warning("Failed to find executable %s", identity)
            return None

        logger.info("Successfully found executable %s at %s", identity, found)
        return self._context.normalizer.normalize(found.absolute(), identity)

    def open_symbol_file(self, path: Path, exe_path: Path | None = None) -> SymbolModule:
        """Open a located symbol file for address and source lookups."""
        session = self._context.open_session(path)
        return SymbolModule(path, session, self._context.locator, exe_path)

    def locate_source(
        self,
        record: SourceFileRecord,
        pdb_path: Path | None = None,
        exe_path: Path | None = None,
        require_checksum_match: bool = False,
    ) -> SourceMatch | None:
        return self._context.locator.locate(record, pdb_path, exe_path, require_checksum_match)

    def _allow_remote(self, allow_remote: bool | None) -> bool:
        if allow_remote is None:
            return not self._context.config.cache_only
        return allow_remote

    def _search(self, identity: SymbolIdentity, allow_remote: bool) -> Path | None:
        for element in self._context.search_path:
            check_cancelled(self._context.cancel_event)
            if isinstance(element, ServerElement):
                found = self._from_server(element, identity.index_path, allow_remote)
                if found is not None:
                    return found
                continue

            candidate = element.directory / identity.file_name
            logger.debug("Probing file %s", candidate)
            if candidate.is_file() and self._accept_local(candidate, identity):
                self._notification.found_symbol_on_path(str(candidate))
                return candidate
            self._notification.probe_failed(str(candidate))
        return None

    def _from_server(
        self, element: ServerElement, index_path: str, allow_remote: bool
    ) -> Path | None:
        cache_dir = self._context.search_path.cache_dir_for(element)
        if allow_remote:
            return self._context.client.fetch(element.remote_root, index_path, cache_dir)
        return self._context.client.probe_cache(index_path, cache_dir)

    def _accept_local(self, candidate: Path, identity: SymbolIdentity) -> bool:
        match = self._match_identity(candidate, identity)
        if match is IdentityMatch.EXACT:
            return True
        if match is IdentityMatch.UNSAFE:
            return is_trusted(candidate, self._context.security_check)
        return False

    def _probe_unsafe_locations(
        self, identity: SymbolIdentity, dll_path: Path | None
    ) -> Path | None:
        candidates: list[Path] = []
        if dll_path is not None:
            candidate = dll_path.with_suffix(".pdb")
            if not candidate.is_file():
                # symbols.pri\retail\dll layout used by Windows and Visual Studio builds
                candidate = (
                    dll_path.parent / "symbols.pri" / "retail" / "dll" / f"{dll_path.stem}.pdb"
                )
            candidates.append(candidate)
        if simple_name(identity.name) != identity.name:
            candidates.append(Path(identity.name))

        for candidate in candidates:
            check_cancelled(self._context.cancel_event)
            logger.debug("Probing unsafe location %s", candidate)
            if not candidate.is_file():
                continue
            if self._match_identity(candidate, identity) is IdentityMatch.MISMATCH:
                continue
            if is_trusted(candidate, self._context.security_check):
                return candidate
        return None

    def _match_identity(self, path: Path, identity: SymbolIdentity) -> IdentityMatch:
        try:
            with closing(self._context.open_session(path)) as session:
                found_id, found_revision = session.identity()
        except DebugInfoError as e:
            logger.warning("Failed to look up symbol file signature for %s: %s", path, e)
            return IdentityMatch.MISMATCH

        match = identity.match(found_id, found_revision)
        if match is IdentityMatch.UNSAFE:
            logger.warning("No GUID provided, assuming an unsafe match for %s", path)
        elif match is IdentityMatch.MISMATCH:
            logger.info(
                "Symbol file %s has GUID %s age %d != desired GUID %s age %d, rejecting.",
                path,
                found_id,
                found_revision,
                identity.unique_id,
                identity.revision,
            )
        return match

    def _executable_matches(self, candidate: Path, identity: ExecutableIdentity) -> bool:
        if not self._context.config.strict_executable_match:
            return True
        try:
            found = self._context.read_executable_identity(candidate)
        except DebugInfoError as e:
            logger.warning("Failed to read header of %s: %s", candidate, e)
            return False
        if (
            found.build_timestamp != identity.build_timestamp
            or found.image_size != identity.image_size
        ):
            logger.info("Found %s but it is %s, not %s, rejecting.", candidate, found, identity)
            return False
        return True
