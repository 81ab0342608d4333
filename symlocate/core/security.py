"""Trust policy for symbol files found outside the search path index."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

SecurityCheck = Callable[[Path], bool]


def is_trusted(path: Path, check: SecurityCheck | None) -> bool:
    """Apply the caller's policy to a file found in an unsafe location.

    With no policy every such file is rejected.
    """
    if check is None:
        logger.warning("Found %s, however this is in an unsafe location.", path)
        logger.warning("If you trust this location, place this directory on the symbol path.")
        return False
    if not check(path):
        logger.warning("Found %s, but it failed the security check.", path)
        return False
    return True


def trust_directories(directories: Iterable[Path]) -> SecurityCheck:
    """Build a policy that trusts files under any of ``directories``."""
    roots = tuple(directory.resolve() for directory in directories)

    def check(path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved.is_relative_to(root) for root in roots)

    return check
