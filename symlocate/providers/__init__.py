"""
Providers: the collaborators that understand symbol file formats.

Symlocate only finds and caches files. Reading them is delegated:

Components:
    - DebugInfoProvider: Opens a symbol file and returns a DebugSession
    - DebugSession: Identity (GUID + age), names and lines by address, source files
    - SourceServerProvider: Rebuilds a source file from source-server data
    - load_provider: Imports a provider from a ``package.module:name`` string
    - UnavailableProvider: Placeholder that fails with ProviderUnavailableError

Adding a provider:
    1. Implement open() returning an object satisfying DebugSession
    2. Implement executable_identity() if strict executable matching is used
    3. Pass it to ResolverContext, or name it with ``--provider`` on the CLI
"""

from symlocate.providers.base import DebugInfoProvider, DebugSession, SourceServerProvider
from symlocate.providers.loader import UnavailableProvider, load_provider

__all__ = [
    "DebugInfoProvider",
    "DebugSession",
    "SourceServerProvider",
    "UnavailableProvider",
    "load_provider",
]
