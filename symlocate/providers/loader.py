"""Loading providers named on the command line."""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any

from symlocate.core.exceptions import ProviderUnavailableError
from symlocate.core.models import ExecutableIdentity
from symlocate.providers.base import DebugSession


class UnavailableProvider:
    """Stand-in used when no debug-info provider is configured."""

    def __init__(self, reason: str = "No debug-info provider is configured") -> None:
        self._reason = reason

    def open(self, path: Path) -> DebugSession:
        raise ProviderUnavailableError(self._reason)

    def executable_identity(self, path: Path) -> ExecutableIdentity:
        raise ProviderUnavailableError(self._reason)


def load_provider(spec: str) -> Any:
    """Import ``package.module:attribute`` and return the provider it names.

    If the attribute is a class or factory function it is called with no
    arguments.
    """
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ProviderUnavailableError(f"Provider '{spec}' must look like 'package.module:name'")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ProviderUnavailableError(f"Cannot load provider '{spec}': {e}") from e
    return target() if callable(target) else target
