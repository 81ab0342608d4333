"""
Core module: identities, search path, cache, and lookup.

Models (models.py):
    - SymbolIdentity: Name + GUID + age of a symbol file
    - ExecutableIdentity: Name + build timestamp + image size of a binary
    - SourceFileRecord: Build-time path and checksum of a source file

Search path (search_path.py):
    - SearchPath: Parsed ``;``-separated list of directories and ``srv*`` servers

Lookup (resolver.py):
    - ResolverContext: Config, provider, trust policy and notifications
    - SymbolResolver: find_symbol_file, find_executable_file, locate_source

Exceptions (exceptions.py):
    - SymlocateError: Base exception for all symlocate errors
    - TransportError, CacheWriteError, DebugInfoError, ...
"""

from symlocate.core.config import SymbolConfig
from symlocate.core.exceptions import (
    CacheWriteError,
    DebugInfoError,
    DecompressionError,
    OperationCancelledError,
    ProviderUnavailableError,
    SearchPathError,
    SymlocateError,
    TransportError,
)
from symlocate.core.models import (
    WILDCARD_ID,
    ChecksumAlgorithm,
    ExecutableIdentity,
    IdentityMatch,
    SourceFileRecord,
    SourceLocation,
    SourceMatch,
    SymbolIdentity,
)
from symlocate.core.modules import SourceFile, SymbolModule
from symlocate.core.notifications import LoggingNotification, SymbolNotification
from symlocate.core.resolver import ResolverContext, SymbolResolver
from symlocate.core.search_path import LocalElement, SearchPath, ServerElement
from symlocate.core.security import SecurityCheck, trust_directories

__all__ = [
    # Models
    "WILDCARD_ID",
    "ChecksumAlgorithm",
    "ExecutableIdentity",
    "IdentityMatch",
    "SourceFileRecord",
    "SourceLocation",
    "SourceMatch",
    "SymbolIdentity",
    "SourceFile",
    "SymbolModule",
    # Exceptions
    "SymlocateError",
    "SearchPathError",
    "TransportError",
    "DecompressionError",
    "CacheWriteError",
    "DebugInfoError",
    "ProviderUnavailableError",
    "OperationCancelledError",
    # Lookup
    "SymbolConfig",
    "SearchPath",
    "LocalElement",
    "ServerElement",
    "ResolverContext",
    "SymbolResolver",
    "SymbolNotification",
    "LoggingNotification",
    "SecurityCheck",
    "trust_directories",
]
