"""
Discovery of provider modules on disk.

Provider modules are plain Python files. Reading one imports it as a fresh
module; if the module defines `register(registry)`, it is called with the
registry so the module can declare specifications and providers.

Directories named `shared` hold helper code imported by providers and are
never scanned. Hidden files and directories are skipped.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spec_broker.registry import Registry

logger = logging.getLogger(__name__)

SHARED_DIR = "shared"
MODULE_SUFFIX = ".py"
REGISTER_HOOK = "register"
MODULE_PREFIX = "spec_broker_provider_"


def module_name_for(path: str | Path) -> str:
    """
    sys.modules name for a provider file, stable per resolved path so that
    re-reading a file replaces its previous module.
    """
    resolved = Path(path).resolve()
    digest = hashlib.sha1(str(resolved).encode()).hexdigest()[:12]
    return f"{MODULE_PREFIX}{resolved.stem}_{digest}"


class ProviderLoader:
    """Reads provider modules from the registry's search roots."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def read_file(self, path: str | Path) -> bool:
        """
        Import one provider module.

        Returns False if the path is blacklisted or the module failed to
        import or register; failures are logged, never raised.
        """
        path = Path(path)
        if self._registry.is_path_blacklisted(path):
            logger.info(f"Skipping blacklisted provider module {path}")
            return False

        module_name = module_name_for(path)
        try:
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise ImportError(f"No module loader for {path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)

            register = getattr(module, REGISTER_HOOK, None)
            if callable(register):
                register(self._registry)
        except Exception as e:
            sys.modules.pop(module_name, None)
            logger.warning(
                f"Unable to read provider module {path}: {e}",
                exc_info=e if self._registry.settings.debug else None,
            )
            return False

        logger.debug(f"Read provider module {path}")
        return True

    def read_dir(self, path: str | Path) -> None:
        """Read every provider module under path, recursing into subdirectories."""
        directory = Path(path)
        if directory.name == SHARED_DIR:
            return

        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                self.read_dir(entry)
            elif entry.is_file() and entry.suffix == MODULE_SUFFIX:
                self.read_file(entry)

    def plugin_dirs(self, include_missing: bool = False) -> list[str]:
        """
        Directories searched for providers: every base dir under every
        sys.path entry, then the absolute plugin dirs.
        """
        dirs = [
            os.path.join(entry, base)
            for entry in dict.fromkeys(sys.path)
            for base in self._registry.base_dirs
        ]
        dirs.extend(self._registry.absolute_dirs)
        if include_missing:
            return dirs
        return [d for d in dirs if os.path.isdir(d)]

    def read_all(self) -> None:
        for path in self.plugin_dirs():
            self.read_dir(path)
