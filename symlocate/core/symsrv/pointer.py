"""Parsing of symbol-server ``file.ptr`` redirection files."""

from __future__ import annotations

from dataclasses import dataclass

FILE_PTR_NAME = "file.ptr"

_PATH_PREFIX = "PATH:"
_MSG_PREFIX = "MSG:"


@dataclass(frozen=True)
class FilePointer:
    """Where a ``file.ptr`` redirects to, or the message it carries instead."""

    path: str | None = None
    message: str | None = None


def parse_file_pointer(text: str) -> FilePointer:
    """Parse ``file.ptr`` content.

    ``PATH:<path>`` and a bare path redirect to a file; ``MSG:<text>`` is a
    definitive failure from the server and must not be followed.
    """
    data = text.strip()
    if data.startswith(_PATH_PREFIX):
        data = data[len(_PATH_PREFIX) :].strip()
    if data.startswith(_MSG_PREFIX):
        return FilePointer(message=data[len(_MSG_PREFIX) :].strip())
    if not data:
        return FilePointer()
    return FilePointer(path=data)
