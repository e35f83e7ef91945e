"""Ordered, deduplicated directories probed for module files."""

from __future__ import annotations

import logging
import os
import sysconfig
from pathlib import Path

logger = logging.getLogger(__name__)


def path_key(path: str | os.PathLike) -> str:
    """Case-insensitive identity of a filesystem path."""
    return os.path.normpath(os.path.abspath(os.fspath(path))).casefold()


def runtime_module_dir() -> Path:
    """The running interpreter's standard library directory."""
    return Path(sysconfig.get_path("stdlib"))


def build_search_paths(
    entry_path: str | os.PathLike | None,
    extra_dirs: list[str | os.PathLike] | None = None,
    *,
    include_runtime_dir: bool = True,
) -> list[Path]:
    """Collect directories to probe, highest priority first.

    Order: the entry module's directory (when an entry is given), the runtime
    module directory, then every extra directory that exists. Duplicates are
    dropped case-insensitively, keeping the first occurrence.
    """
    candidates: list[Path] = []
    if entry_path:
        candidates.append(Path(os.path.abspath(entry_path)).parent)
    if include_runtime_dir:
        candidates.append(runtime_module_dir())
    for extra in extra_dirs or []:
        if extra and os.path.isdir(extra):
            candidates.append(Path(os.path.abspath(extra)))

    seen: set[str] = set()
    paths: list[Path] = []
    for candidate in candidates:
        key = path_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        paths.append(candidate)

    logger.debug(f"Dependency search paths: {[str(p) for p in paths]}")
    return paths
