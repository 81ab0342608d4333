"""
Local cache: symbol-server layout on disk.

Components:
    - CacheNormalizer: Copies located files to their canonical cache path
    - write_atomically / copy_file_atomically: Temp-file-then-rename writes
    - compute_file_hash: MD5 digest used for source checksum checks

Layout:
    cache/name/GUIDAGE/name     identified symbol files
    cache/name/TIMESIZE/name    executables
    cache/name                  unidentified files (opt-in)

Entries are never evicted; they are only overwritten when the source is newer.
"""

from symlocate.core.cache.files import (
    check_cancelled,
    compute_file_hash,
    copy_file_atomically,
    make_room_for,
    remove_stray_file,
    write_atomically,
)
from symlocate.core.cache.normalizer import CacheNormalizer

__all__ = [
    "CacheNormalizer",
    "check_cancelled",
    "compute_file_hash",
    "copy_file_atomically",
    "make_room_for",
    "remove_stray_file",
    "write_atomically",
]
