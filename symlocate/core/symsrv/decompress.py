"""Expansion of compressed (``.pd_``, ``.dl_``) symbol-server files.

Symbol servers store compressed files as cabinet archives. Expansion is
delegated to the platform tool: ``expand`` on Windows, ``cabextract``
elsewhere.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

from symlocate.core.exceptions import DecompressionError

Decompressor = Callable[[Path, Path], None]

_TIMEOUT = 300


def expand_cabinet(compressed: Path, target: Path) -> None:
    """Expand the cabinet ``compressed`` into the file ``target``.

    Raises:
        DecompressionError: If no expansion tool is available or it fails.
    """
    try:
        if sys.platform == "win32":
            result = subprocess.run(
                ["expand", str(compressed), str(target)],
                capture_output=True,
                timeout=_TIMEOUT,
                check=False,
            )
        else:
            cabextract = shutil.which("cabextract")
            if cabextract is None:
                raise DecompressionError(
                    f"Cannot expand {compressed}: cabextract is not installed"
                )
            with target.open("wb") as out:
                result = subprocess.run(
                    [cabextract, "-q", "-p", str(compressed)],
                    stdout=out,
                    stderr=subprocess.PIPE,
                    timeout=_TIMEOUT,
                    check=False,
                )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise DecompressionError(f"Cannot expand {compressed}: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode(errors="replace").strip() if result.stderr else ""
        raise DecompressionError(
            f"Expanding {compressed} failed with exit code {result.returncode}: {stderr}"
        )
