"""Transports for symbol-server roots: file shares and HTTP."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from symlocate.core.cache.files import iter_chunks
from symlocate.core.exceptions import TransportError

USER_AGENT = "Microsoft-Symbol-Server/6.13.0009.1140"

_RETRY_STATUSES = (429, 500, 502, 503, 504)


def is_http_root(remote_root: str) -> bool:
    return remote_root.lower().startswith(("http:", "https:"))


def build_url(remote_root: str, index_path: str) -> str:
    """URL for ``index_path`` under an HTTP symbol server root."""
    relative = index_path.replace("\\", "/")
    return f"{remote_root.rstrip('/')}/{quote(relative)}"


class Transport(Protocol):
    """Reads a file at ``remote_root/index_path`` as a stream of chunks."""

    def location(self, remote_root: str, index_path: str) -> str:
        """Human-readable location of the file, for logs and notifications."""
        ...

    def open(self, remote_root: str, index_path: str) -> AbstractContextManager[Iterator[bytes]]:
        """Context manager yielding an iterator of byte chunks.

        Raises TransportError if the file is absent or cannot be read.
        """
        ...


class ShareTransport:
    """Reads files from a local directory or network share."""

    def __init__(self, chunk_size: int = 8192) -> None:
        self._chunk_size = chunk_size

    def location(self, remote_root: str, index_path: str) -> str:
        return str(Path(remote_root) / index_path)

    @contextmanager
    def open(self, remote_root: str, index_path: str) -> Iterator[Iterator[bytes]]:
        source = Path(remote_root) / index_path
        if not source.is_file():
            raise TransportError(f"{source} does not exist")
        try:
            handle = source.open("rb")
        except OSError as e:
            raise TransportError(f"Cannot open {source}: {e}") from e
        with handle:
            yield self._read(handle, source)

    def _read(self, handle: BinaryIO, source: Path) -> Iterator[bytes]:
        try:
            yield from iter_chunks(handle, self._chunk_size)
        except OSError as e:
            raise TransportError(f"Error reading {source}: {e}") from e

    def close(self) -> None:
        pass


class HttpTransport:
    """Streams files from an HTTP symbol server with ``requests``."""

    def __init__(self, timeout: float = 30.0, retries: int = 0, chunk_size: int = 8192) -> None:
        self._timeout = timeout
        self._retries = retries
        self._chunk_size = chunk_size
        self._session: requests.Session | None = None

    def _get_session(self) -> requests.Session:
        """Get or create the HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            if self._retries:
                retry_strategy = Retry(
                    total=self._retries,
                    backoff_factor=0.5,
                    status_forcelist=_RETRY_STATUSES,
                )
                adapter = HTTPAdapter(max_retries=retry_strategy)
                self._session.mount("http://", adapter)
                self._session.mount("https://", adapter)
            self._session.headers.update({"User-Agent": USER_AGENT})
        return self._session

    def location(self, remote_root: str, index_path: str) -> str:
        return build_url(remote_root, index_path)

    @contextmanager
    def open(self, remote_root: str, index_path: str) -> Iterator[Iterator[bytes]]:
        url = build_url(remote_root, index_path)
        try:
            response = self._get_session().get(url, stream=True, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        with response:
            if not response.ok:
                raise TransportError(f"GET {url} returned HTTP {response.status_code}")
            yield self._read(response, url)

    def _read(self, response: requests.Response, url: str) -> Iterator[bytes]:
        try:
            yield from response.iter_content(chunk_size=self._chunk_size)
        except requests.RequestException as e:
            raise TransportError(f"Error reading {url}: {e}") from e

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
