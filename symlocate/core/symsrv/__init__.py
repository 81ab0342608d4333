"""
Symbol-server protocol.

Components:
    - SymbolServerClient: Tiered fetch (direct, compressed, file.ptr) into a cache
    - ShareTransport / HttpTransport: File share and HTTP backends
    - parse_file_pointer: Reads file.ptr redirection content
    - expand_cabinet: Default expansion of compressed ``_`` files

Index paths use forward slashes: ``name/KEY/name``.
"""

from symlocate.core.symsrv.client import (
    SymbolServerClient,
    compressed_index_path,
    pointer_index_path,
)
from symlocate.core.symsrv.decompress import Decompressor, expand_cabinet
from symlocate.core.symsrv.pointer import FilePointer, parse_file_pointer
from symlocate.core.symsrv.transport import (
    USER_AGENT,
    HttpTransport,
    ShareTransport,
    build_url,
)

__all__ = [
    "SymbolServerClient",
    "compressed_index_path",
    "pointer_index_path",
    "Decompressor",
    "expand_cabinet",
    "FilePointer",
    "parse_file_pointer",
    "USER_AGENT",
    "HttpTransport",
    "ShareTransport",
    "build_url",
]
