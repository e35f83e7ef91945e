"""Startup configuration of the evaluator: references plus default imports."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pyinteractive.references import Reference, baseline_references, build_references
from pyinteractive.resolver import DependencyResolver, ImplicitModules
from pyinteractive.search_paths import build_search_paths, path_key

logger = logging.getLogger(__name__)

# Bound by name in every fresh evaluation namespace.
DEFAULT_IMPORTS = (
    "asyncio",
    "collections",
    "functools",
    "itertools",
    "math",
    "os",
    "re",
)


@dataclass(frozen=True)
class ScriptOptions:
    references: tuple[Reference, ...] = ()
    imports: tuple[str, ...] = DEFAULT_IMPORTS

    @property
    def search_roots(self) -> list[Path]:
        """Import roots of all references, in reference order, without duplicates."""
        seen: set[str] = set()
        roots: list[Path] = []
        for ref in self.references:
            key = path_key(ref.root)
            if key not in seen:
                seen.add(key)
                roots.append(ref.root)
        return roots


def create_options(
    entry_path: str | os.PathLike | None = None,
    search_paths: list[str | os.PathLike] | None = None,
    *,
    imports: tuple[str, ...] | list[str] | None = None,
    include_runtime_dir: bool = True,
    implicit: ImplicitModules | None = None,
) -> ScriptOptions:
    """Build ScriptOptions once at startup.

    With an entry module the references come from resolving its import graph;
    without one, the baseline references of the running interpreter are used.
    """
    if entry_path:
        dirs = build_search_paths(entry_path, search_paths, include_runtime_dir=include_runtime_dir)
        result = DependencyResolver(dirs, implicit).resolve(entry_path)
        if result.errors:
            logger.info(f"Dependency resolution finished with {len(result.errors)} warning(s)")
        references = build_references(result.paths)
    else:
        references = baseline_references()

    return ScriptOptions(
        references=tuple(references),
        imports=tuple(imports) if imports is not None else DEFAULT_IMPORTS,
    )
