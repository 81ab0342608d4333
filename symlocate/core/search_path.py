"""Symbol search path: an ordered list of local directories and symbol servers.

A search path is written as ``;``-separated elements. Each element is either
a plain directory or a symbol-server clause::

    c:\\symbols;srv*c:\\cache*http://msdl.microsoft.com/download/symbols;srv*\\\\share\\syms

``srv*remote`` uses the default cache, ``srv*cache*remote`` an explicit one.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from symlocate.core.exceptions import SearchPathError

logger = logging.getLogger(__name__)

SEPARATOR = ";"

_EXTENSION_DIRS = ("dll", "exe")


def default_symbol_cache() -> Path:
    """Process-wide fallback for server elements with no cache directory."""
    return Path(tempfile.gettempdir()) / "symbols"


@dataclass(frozen=True)
class LocalElement:
    """A plain directory probed for ``directory/name``."""

    directory: Path

    @property
    def is_server(self) -> bool:
        return False

    def __str__(self) -> str:
        return str(self.directory)


@dataclass(frozen=True)
class ServerElement:
    """A symbol server (HTTP root or file share) with an optional local cache."""

    remote_root: str
    cache_dir: Path | None = None

    @property
    def is_server(self) -> bool:
        return True

    @property
    def is_http(self) -> bool:
        return self.remote_root.lower().startswith(("http:", "https:"))

    def __str__(self) -> str:
        if self.cache_dir is None:
            return f"srv*{self.remote_root}"
        return f"srv*{self.cache_dir}*{self.remote_root}"


PathElement = LocalElement | ServerElement


def parse_element(clause: str) -> PathElement:
    """Parse a single search path clause."""
    text = clause.strip()
    lowered = text.lower()

    if lowered.startswith("symsrv*"):
        # symsrv*<dll>*cache*remote: the dll name is meaningless here
        _, _, text = text.partition("*")
        _, _, text = text.partition("*")
        return _parse_server(clause, text)
    if lowered.startswith("srv*"):
        return _parse_server(clause, text[len("srv*") :])

    return LocalElement(Path(text))


def _parse_server(clause: str, body: str) -> ServerElement:
    parts = body.split("*")
    remote = parts[-1].strip()
    if not remote:
        raise SearchPathError(f"Symbol server clause '{clause}' has no server")

    if len(parts) == 1:
        return ServerElement(remote)

    if len(parts) > 2:
        logger.debug("Ignoring intermediate caches %s in '%s'", parts[1:-1], clause)
    cache = parts[0].strip()
    return ServerElement(remote, Path(cache) if cache else None)


class SearchPath:
    """Ordered, immutable sequence of search path elements.

    Order is significant: the first element that yields a match wins.
    Duplicates are kept as written.
    """

    __slots__ = ("_elements", "_default_cache_dir")

    def __init__(
        self, elements: Iterable[PathElement] = (), default_cache_dir: Path | None = None
    ) -> None:
        self._elements: tuple[PathElement, ...] = tuple(elements)
        self._default_cache_dir = default_cache_dir

    @classmethod
    def parse(cls, spec: str | None, default_cache_dir: Path | None = None) -> SearchPath:
        """Parse a ``;``-separated search path. Empty clauses are skipped."""
        if not spec:
            return cls((), default_cache_dir)
        elements = [parse_element(part) for part in spec.split(SEPARATOR) if part.strip()]
        return cls(elements, default_cache_dir)

    @property
    def elements(self) -> tuple[PathElement, ...]:
        return self._elements

    @property
    def default_cache_dir(self) -> Path:
        """Explicit default, else the first server cache, else the temp directory cache."""
        if self._default_cache_dir is not None:
            return self._default_cache_dir
        for element in self._elements:
            if isinstance(element, ServerElement) and element.cache_dir is not None:
                return element.cache_dir
        return default_symbol_cache()

    def cache_dir_for(self, element: ServerElement) -> Path:
        return element.cache_dir if element.cache_dir is not None else self.default_cache_dir

    def with_extension_directories(self) -> SearchPath:
        """Return a path where each local directory is followed by its ``dll``/``exe`` subdirs.

        Only subdirectories that exist are added.
        """
        expanded: list[PathElement] = []
        for element in self._elements:
            expanded.append(element)
            if isinstance(element, LocalElement):
                for sub in _EXTENSION_DIRS:
                    probe = element.directory / sub
                    if probe.is_dir():
                        expanded.append(LocalElement(probe))
        return SearchPath(expanded, self._default_cache_dir)

    def __iter__(self) -> Iterator[PathElement]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchPath):
            return NotImplemented
        return self._elements == other._elements

    def __hash__(self) -> int:
        return hash(self._elements)

    def __str__(self) -> str:
        return SEPARATOR.join(str(element) for element in self._elements)

    def __repr__(self) -> str:
        return f"SearchPath({str(self)!r})"
