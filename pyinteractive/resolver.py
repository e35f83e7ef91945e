"""Transitive module dependency resolver.

Starting from an entry module, walks the import graph breadth-first. Imports
classified as implicit (compiled into the interpreter, or in a reserved
namespace) are skipped; the rest are probed in the search directories and
memoized per pass, including negative results. Every problem met on the way
is recorded as a non-fatal error and logged, so one bad module never aborts
the rest of the graph.
"""

from __future__ import annotations

import logging
import os
import sys
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from pyinteractive.exceptions import (
    ModuleLoadError,
    PyInteractiveError,
    ReferenceResolutionError,
)
from pyinteractive.modules import MODULE_SUFFIXES, ModuleName, load_module
from pyinteractive.search_paths import path_key

logger = logging.getLogger(__name__)

IMPLICIT_MODULE_NAMES = frozenset({"builtins", "sys", *sys.builtin_module_names})
IMPLICIT_MODULE_PREFIXES = ("__",)


@dataclass(frozen=True)
class ImplicitModules:
    """Modules assumed always available to the evaluator; never resolved."""

    names: frozenset[str] = IMPLICIT_MODULE_NAMES
    prefixes: tuple[str, ...] = IMPLICIT_MODULE_PREFIXES

    def extended(self, names: Iterable[str]) -> ImplicitModules:
        return ImplicitModules(names=self.names | frozenset(names), prefixes=self.prefixes)


def is_implicit_module(module: ModuleName | str, implicit: ImplicitModules | None = None) -> bool:
    """Exact match on the full or top-level name, or a reserved-prefix match.

    Relative imports are never implicit.
    """
    implicit = implicit or ImplicitModules()
    if isinstance(module, ModuleName):
        if module.is_relative:
            return False
        name = module.name
    else:
        name = module
    if not name:
        return False
    if name in implicit.names or name.partition(".")[0] in implicit.names:
        return True
    return name.startswith(implicit.prefixes)


# ==================== Cache ====================


@dataclass(frozen=True)
class Found:
    path: Path


@dataclass(frozen=True)
class NotFound:
    pass


NOT_FOUND = NotFound()

Resolution = Found | NotFound


class ModuleResolverCache:
    """Per-pass memo from fully-qualified module name to Found | NotFound.

    Entries are written once; later writes for the same key are ignored.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Resolution] = {}

    def get(self, key: str) -> Resolution | None:
        return self._entries.get(key)

    def put(self, key: str, result: Resolution) -> Resolution:
        return self._entries.setdefault(key, result)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# ==================== Resolved set ====================


class ResolvedSet:
    """Insertion-ordered set of absolute paths, compared case-insensitively."""

    def __init__(self, paths: Iterable[str | os.PathLike] = ()) -> None:
        self._paths: dict[str, Path] = {}
        for p in paths:
            self.add(p)

    def add(self, path: str | os.PathLike) -> bool:
        """Insert path; return False if an equal path is already present."""
        key = path_key(path)
        if key in self._paths:
            return False
        self._paths[key] = Path(os.path.abspath(path))
        return True

    def discard(self, path: str | os.PathLike) -> None:
        self._paths.pop(path_key(path), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return path_key(path) in self._paths

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._paths.values()))

    def __len__(self) -> int:
        return len(self._paths)

    def __repr__(self) -> str:
        return f"ResolvedSet({[str(p) for p in self._paths.values()]!r})"


@dataclass
class ResolutionResult:
    """Outcome of one resolution pass.

    Attributes:
        paths: Every module file reachable from the entry that loaded cleanly.
        analyzed: Files whose imports were enumerated, in visit order.
        errors: Non-fatal problems met during the pass, in the order seen.
    """

    paths: ResolvedSet
    analyzed: list[Path] = field(default_factory=list)
    errors: list[PyInteractiveError] = field(default_factory=list)


# ==================== Resolver ====================


def _probe(directory: Path, name: str) -> Path | None:
    """First of <dir>/<name>.<ext>, <dir>/<name>/<name>.<ext>, <dir>/<name>/__init__.<ext>."""
    for suffix in MODULE_SUFFIXES:
        candidate = directory / f"{name}{suffix}"
        if candidate.is_file():
            return candidate
    package_dir = directory / name
    if not package_dir.is_dir():
        return None
    for stem in (name, "__init__"):
        for suffix in MODULE_SUFFIXES:
            candidate = package_dir / f"{stem}{suffix}"
            if candidate.is_file():
                return candidate
    return None


class DependencyResolver:
    """Breadth-first, cycle-safe walk of a module's import graph.

    Args:
        search_paths: Directories to probe, highest priority first.
        implicit: Classification of modules that are never resolved.
    """

    def __init__(
        self,
        search_paths: list[Path],
        implicit: ImplicitModules | None = None,
    ) -> None:
        self.search_paths = list(search_paths)
        self.implicit = implicit or ImplicitModules()

    def find_module_file(self, module: ModuleName) -> Path | None:
        """Probe the filesystem for module by simple name. First match wins."""
        name = module.simple_name
        if not name:
            return None
        if module.is_relative:
            base = module.base_dir
            directories = [base] if base is not None else []
        else:
            directories = self.search_paths
        for directory in directories:
            found = _probe(directory, name)
            if found is not None:
                return Path(os.path.abspath(found))
        return None

    def _lookup(self, module: ModuleName, cache: ModuleResolverCache) -> Resolution:
        key = module.full_name
        cached = cache.get(key)
        if cached is not None:
            return cached
        found = self.find_module_file(module)
        return cache.put(key, Found(found) if found is not None else NOT_FOUND)

    def resolve(self, entry_path: str | os.PathLike) -> ResolutionResult:
        """Resolve every module file reachable from entry_path.

        A module that fails to load is dropped and its imports are not
        followed; an import that cannot be found is omitted. Both are logged
        and recorded on the result.
        """
        entry = Path(os.path.abspath(entry_path))
        resolved = ResolvedSet([entry])
        # every path ever queued, including those later dropped for failing to load
        enqueued = ResolvedSet([entry])
        queue: deque[Path] = deque([entry])
        cache = ModuleResolverCache()
        result = ResolutionResult(paths=resolved)

        while queue:
            current = queue.popleft()
            logger.debug(f"Analyzing: {current}")
            try:
                loaded = load_module(current)
            except ModuleLoadError as e:
                logger.warning(f"{e}. Skipping.")
                resolved.discard(current)
                result.errors.append(e)
                continue
            result.analyzed.append(current)

            for module in loaded.imports:
                if is_implicit_module(module, self.implicit):
                    continue
                outcome = self._lookup(module, cache)
                if isinstance(outcome, NotFound):
                    err = ReferenceResolutionError(
                        f"Could not resolve dependency '{module}' imported by {current}",
                        module=str(module),
                        origin=current,
                    )
                    logger.warning(str(err))
                    result.errors.append(err)
                    continue
                if enqueued.add(outcome.path):
                    resolved.add(outcome.path)
                    logger.debug(f"Resolved dependency: {module} -> {outcome.path}")
                    queue.append(outcome.path)

        logger.info(f"Resolved {len(resolved)} module(s) from {entry}")
        return result


def resolve_dependencies(
    entry_path: str | os.PathLike,
    search_paths: list[Path],
    implicit: ImplicitModules | None = None,
) -> ResolutionResult:
    """Run one fresh resolution pass."""
    return DependencyResolver(search_paths, implicit).resolve(entry_path)
