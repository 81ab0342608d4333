"""
Symlocate: find and cache debug-symbol files and their sources.

Symlocate walks a symbol search path (local directories, file shares and
HTTP symbol servers) to locate the symbol file or executable matching a
binary's identity, and keeps what it finds in a local symbol-server style
cache. It can then:
- Resolve code addresses to names and source lines via a debug-info provider
- Locate the exact source files a binary was built from, checking checksums

Usage:
    from symlocate.core import ResolverContext, SymbolConfig, SymbolIdentity, SymbolResolver

    config = SymbolConfig.from_environment()
    with ResolverContext(config, provider=my_provider) as context:
        resolver = SymbolResolver(context)
        path = resolver.find_symbol_file(SymbolIdentity("app.pdb", guid, 1))
"""

__version__ = "0.1.0"
