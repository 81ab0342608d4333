"""Symlocate custom exceptions."""


class SymlocateError(Exception):
    """Base exception for Symlocate errors."""


class SearchPathError(SymlocateError):
    """A search path specification could not be parsed."""


class TransportError(SymlocateError):
    """Fetching a file from a share or symbol server failed."""


class DecompressionError(TransportError):
    """A compressed symbol-server file could not be expanded."""


class CacheWriteError(SymlocateError):
    """A file could not be written to the local cache."""


class DebugInfoError(SymlocateError):
    """A debug-info provider could not read a candidate file."""


class ProviderUnavailableError(SymlocateError):
    """The debug-info provider cannot be loaded at all."""


class OperationCancelledError(SymlocateError):
    """A lookup or download was cancelled by the caller."""
