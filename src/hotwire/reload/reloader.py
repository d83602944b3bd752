"""Module reloading behind the orchestrator.

The orchestrator only needs something satisfying the Reloader protocol.
ModuleReloader is the default: it tracks Python sources under a set of
directories and reloads the imported modules whose files changed. It
does no dependency ordering; modules are reloaded by name.
"""

import hashlib
import importlib
import logging
import re
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from hotwire.reload.models import ReloadOptions, ReloadResult

logger = logging.getLogger(__name__)

DEFAULT_DIRS = ("src",)


class ReloadError(Exception):
    """Raised when a module fails to reload and the caller asked to throw."""

    def __init__(self, failed: str, cause: BaseException):
        self.failed = failed
        self.cause = cause
        super().__init__(f"Failed to reload {failed}: {cause}")


class Reloader(Protocol):
    """The reload engine the orchestrator delegates to."""

    def init(
        self,
        dirs: Iterable[str | Path],
        no_reload: Iterable[str] | None = None,
        no_unload: Iterable[str] | None = None,
    ) -> None: ...

    def reload(self, options: ReloadOptions) -> ReloadResult: ...

    def find_namespaces(self, pattern: str | re.Pattern[str]) -> list[str]: ...


class ModuleReloader:
    """Reloads Python modules found under source directories.

    Flow:
    1. init() snapshots a content hash for every *.py under the dirs
    2. reload() picks the modules selected by the options
    3. Deleted files are dropped from sys.modules
    4. Other selected modules are dropped and re-imported, or reloaded in
       place when listed in no_unload
    5. The first failure stops the pass
    """

    def __init__(self) -> None:
        self.dirs: list[Path] = []
        self.no_reload: frozenset[str] = frozenset()
        self.no_unload: frozenset[str] = frozenset()
        self._file_hashes: dict[Path, str] = {}

    def init(
        self,
        dirs: Iterable[str | Path] = DEFAULT_DIRS,
        no_reload: Iterable[str] | None = None,
        no_unload: Iterable[str] | None = None,
    ) -> None:
        """Set the source directories and snapshot their current state.

        Args:
            dirs: Source roots; module names are relative to these.
            no_reload: Modules never reloaded.
            no_unload: Modules reloaded in place instead of re-imported.
        """
        self.dirs = [Path(d) for d in dirs]
        self.no_reload = frozenset(no_reload or ())
        self.no_unload = frozenset(no_unload or ())
        self._file_hashes = self._scan_files()
        logger.info(f"ModuleReloader initialized with {len(self._file_hashes)} files")

    def _compute_hash(self, path: Path) -> str:
        """Compute SHA256 hash of file content."""
        return hashlib.sha256(path.read_bytes()).hexdigest()

    def _scan_files(self) -> dict[Path, str]:
        """Hash every Python file under the source directories."""
        files: dict[Path, str] = {}

        for source_dir in self.dirs:
            if not source_dir.exists():
                continue

            for path in source_dir.rglob("*.py"):
                if "__pycache__" in path.parts:
                    continue
                try:
                    files[path] = self._compute_hash(path)
                except OSError as e:
                    logger.debug(f"Error scanning {path}: {e}")

        return files

    def path_to_module(self, path: Path) -> str | None:
        """Convert a file path to a module name.

        Args:
            path: Path to a Python file under one of the source dirs.

        Returns:
            Module name (e.g., "pkg.sub.mod") or None.
        """
        if path.suffix != ".py":
            return None

        for source_dir in self.dirs:
            try:
                rel_path = path.relative_to(source_dir)
                break
            except ValueError:
                continue
        else:
            return None

        parts = rel_path.parts
        if parts[-1] == "__init__.py":
            parts = parts[:-1]
        else:
            parts = (*parts[:-1], parts[-1].removesuffix(".py"))

        if not parts:
            return None
        return ".".join(parts)

    def _detect_changes(self) -> tuple[list[str], list[str]]:
        """Diff the sources against the last snapshot.

        Returns:
            Tuple of (changed module names, deleted module names).
        """
        current = self._scan_files()
        changed: list[str] = []
        deleted: list[str] = []

        for path, file_hash in current.items():
            if self._file_hashes.get(path) != file_hash:
                module_name = self.path_to_module(path)
                if module_name:
                    changed.append(module_name)

        for path in self._file_hashes:
            if path not in current:
                module_name = self.path_to_module(path)
                if module_name:
                    deleted.append(module_name)

        self._file_hashes = current
        return sorted(changed), sorted(deleted)

    def _imported_modules(self) -> list[str]:
        """Modules from the source dirs that are currently imported."""
        known = {self.path_to_module(path) for path in self._file_hashes}
        return sorted(name for name in known if name and name in sys.modules)

    def find_namespaces(self, pattern: str | re.Pattern[str]) -> list[str]:
        """List module names under the source dirs matching a pattern."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        names = {self.path_to_module(path) for path in self._scan_files()}
        return sorted(name for name in names if name and regex.fullmatch(name))

    def _select(self, options: ReloadOptions) -> tuple[list[str], list[str]]:
        if options.only == "changed":
            changed, deleted = self._detect_changes()
            # Modules nobody imported yet are left for their first import
            return [name for name in changed if name in sys.modules], deleted

        # A full pass also resets the change baseline
        self._file_hashes = self._scan_files()
        modules = self._imported_modules()
        pattern = options.pattern
        if pattern is not None:
            modules = [name for name in modules if pattern.fullmatch(name)]
        return modules, []

    def reload(self, options: ReloadOptions | None = None) -> ReloadResult:
        """Reload the modules selected by the options.

        Args:
            options: What to reload and whether to raise on failure.

        Returns:
            ReloadResult describing what was loaded, unloaded or failed.

        Raises:
            ReloadError: If a module fails and options.throw is set.
        """
        options = options or ReloadOptions()
        targets, deleted = self._select(options)
        importlib.invalidate_caches()

        unloaded: list[str] = []
        loaded: list[str] = []

        for module_name in deleted:
            if module_name in self.no_reload:
                continue
            if sys.modules.pop(module_name, None) is not None:
                unloaded.append(module_name)
                logger.info(f"Unloaded deleted module: {module_name}")

        for module_name in targets:
            if module_name in self.no_reload:
                logger.debug(f"Module {module_name} excluded from reload")
                continue

            try:
                if module_name in self.no_unload and module_name in sys.modules:
                    importlib.reload(sys.modules[module_name])
                else:
                    if sys.modules.pop(module_name, None) is not None:
                        unloaded.append(module_name)
                    importlib.import_module(module_name)
            except Exception as e:
                logger.error(f"Failed to reload module {module_name}: {e}")
                if options.throw:
                    raise ReloadError(module_name, e) from e
                return ReloadResult(
                    loaded=tuple(loaded),
                    unloaded=tuple(unloaded),
                    failed=module_name,
                    error=e,
                )

            loaded.append(module_name)
            logger.info(f"Reloaded module: {module_name}")

        return ReloadResult(loaded=tuple(loaded), unloaded=tuple(unloaded))
