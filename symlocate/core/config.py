"""Configuration resolved once from the environment."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from symlocate.core.search_path import SEPARATOR, SearchPath

logger = logging.getLogger(__name__)

SYMBOL_PATH_VAR = "_NT_SYMBOL_PATH"
SOURCE_PATH_VAR = "_NT_SOURCE_PATH"

DEFAULT_CHUNK_SIZE = 8192
DEFAULT_HTTP_TIMEOUT = 30.0


def parse_source_path(spec: str | None) -> tuple[Path, ...]:
    """Split a ``;``-separated source path, keeping only directories that exist."""
    if not spec:
        return ()
    locations: list[Path] = []
    for part in spec.split(SEPARATOR):
        normalized = part.strip().rstrip("\\/")
        if not normalized:
            continue
        path = Path(normalized)
        if path.is_dir():
            locations.append(path)
        else:
            logger.warning("Path %s in source path does not exist, skipping.", normalized)
    return tuple(locations)


def default_source_cache() -> Path:
    """Where source-server downloads land by default."""
    return Path(tempfile.gettempdir()) / "SrcCache"


@dataclass(frozen=True)
class SymbolConfig:
    """Settings that control symbol and source lookup.

    Build with :meth:`from_environment` to pick up ``_NT_SYMBOL_PATH`` and
    ``_NT_SOURCE_PATH``; the environment is read exactly once.
    """

    symbol_path: SearchPath = field(default_factory=SearchPath)
    symbol_cache_dir: Path | None = None
    source_path: tuple[Path, ...] = ()
    source_cache_dir: Path = field(default_factory=default_source_cache)
    # Only consult local directories and the caches of server elements
    cache_only: bool = False
    # Copy files matched without a verified identity into the cache
    cache_unsafe_files: bool = False
    # Verify timestamp/size of executables found in local directories
    strict_executable_match: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    http_retries: int = 0
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @classmethod
    def from_environment(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> SymbolConfig:
        """Resolve configuration from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        config = cls(
            symbol_path=SearchPath.parse(env.get(SYMBOL_PATH_VAR)),
            source_path=parse_source_path(env.get(SOURCE_PATH_VAR)),
        )
        return replace(config, **overrides) if overrides else config

    @property
    def cache_dir(self) -> Path:
        """Directory the cache normalizer copies located files into."""
        if self.symbol_cache_dir is not None:
            return self.symbol_cache_dir
        return self.symbol_path.default_cache_dir
