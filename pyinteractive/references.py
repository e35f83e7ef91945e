"""Loadable module references handed to the evaluator."""

from __future__ import annotations

import importlib
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from pyinteractive.exceptions import ReferenceConversionError
from pyinteractive.modules import MODULE_SUFFIXES
from pyinteractive.search_paths import path_key

logger = logging.getLogger(__name__)

# Modules from the running interpreter referenced when no entry module is given.
BASELINE_MODULES = (
    "collections",
    "functools",
    "asyncio",
    "typing",
    "os",
    "json",
    "re",
    "pathlib",
    "dataclasses",
    "textwrap",
)


def _import_name(path: Path) -> tuple[str, Path]:
    """Dotted import name of a module file and the directory it imports from."""
    parts = [] if path.stem == "__init__" else [path.stem]
    directory = path.parent
    while (directory / "__init__.py").is_file():
        parts.insert(0, directory.name)
        directory = directory.parent
    return ".".join(parts), directory


@dataclass(frozen=True, eq=False)
class Reference:
    """A module file the evaluator can import.

    Identity is the file path, compared case-insensitively.
    """

    path: Path
    name: str
    root: Path = field(repr=False)

    @classmethod
    def from_path(cls, path: str | os.PathLike) -> Reference:
        """Build a Reference from a module file.

        Raises:
            ReferenceConversionError: path is not an existing module file or
                has no importable dotted name.
        """
        resolved = Path(os.path.abspath(path))
        if resolved.suffix.lower() not in MODULE_SUFFIXES:
            raise ReferenceConversionError(f"Not a module file: {resolved}", path=resolved)
        try:
            is_file = resolved.is_file()
        except OSError as e:
            raise ReferenceConversionError(f"Cannot stat {resolved}: {e}", path=resolved, cause=e)
        if not is_file:
            raise ReferenceConversionError(f"Module file does not exist: {resolved}", path=resolved)

        name, root = _import_name(resolved)
        if not name or not all(part.isidentifier() for part in name.split(".")):
            raise ReferenceConversionError(
                f"Cannot derive an import name for {resolved}", path=resolved
            )
        return cls(path=resolved, name=name, root=root)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Reference):
            return NotImplemented
        return path_key(self.path) == path_key(other.path)

    def __hash__(self) -> int:
        return hash(path_key(self.path))


def _append_unique(references: list[Reference], ref: Reference) -> None:
    if ref not in references:
        references.append(ref)


def build_references(paths: Iterable[str | os.PathLike]) -> list[Reference]:
    """Convert resolved module paths to References, dropping any that fail."""
    references: list[Reference] = []
    for path in paths:
        try:
            ref = Reference.from_path(path)
        except ReferenceConversionError as e:
            logger.warning(f"Failed to create reference for {path}: {e}")
            continue
        logger.debug(f"Adding reference: {ref.name} ({ref.path})")
        _append_unique(references, ref)
    return references


def baseline_references(modules: Iterable[str] = BASELINE_MODULES) -> list[Reference]:
    """References to modules of the running interpreter.

    A module that cannot be imported, has no file, or cannot be converted is
    dropped with a warning.
    """
    references: list[Reference] = []
    for name in modules:
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            logger.warning(f"Could not load baseline module {name}: {e}")
            continue
        location = getattr(module, "__file__", None)
        if not location:
            logger.warning(f"Baseline module {name} has no file; skipping")
            continue
        try:
            ref = Reference.from_path(location)
        except ReferenceConversionError as e:
            logger.warning(f"Could not reference baseline module {name}: {e}")
            continue
        _append_unique(references, ref)
    return references
