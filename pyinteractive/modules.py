"""Module files and the imports they declare.

load_module() opens a .py or .pyc file and enumerates its imports without
executing it. Source files are parsed with ast; compiled files are unmarshalled
and scanned for IMPORT_NAME instructions.
"""

from __future__ import annotations

import ast
import dis
import importlib.util
import marshal
import types
from dataclasses import dataclass, field
from pathlib import Path

from pyinteractive.exceptions import ModuleLoadError
from pyinteractive.search_paths import path_key

SOURCE_SUFFIX = ".py"
COMPILED_SUFFIX = ".pyc"
MODULE_SUFFIXES = (SOURCE_SUFFIX, COMPILED_SUFFIX)

# magic (4) + flags (4) + mtime/hash (8)
_PYC_HEADER_SIZE = 16


@dataclass(frozen=True)
class ModuleName:
    """An import declared by a module.

    ``name`` is the dotted module path as written (empty for the container of
    ``from . import x``). ``level`` is the relative-import depth, 0 for
    absolute imports. ``origin`` is the file that declared the import.
    """

    name: str
    level: int = 0
    origin: Path | None = field(default=None, compare=False)

    @property
    def simple_name(self) -> str:
        return self.name.partition(".")[0]

    @property
    def is_relative(self) -> bool:
        return self.level > 0

    @property
    def base_dir(self) -> Path | None:
        """Package directory a relative import is anchored to."""
        if not self.is_relative or self.origin is None:
            return None
        base = self.origin.parent
        for _ in range(self.level - 1):
            base = base.parent
        return base

    @property
    def full_name(self) -> str:
        """Cache key: the dotted name, anchored to its package when relative."""
        if not self.is_relative:
            return self.name
        base = self.base_dir
        anchor = path_key(base) if base is not None else ""
        return f"{anchor}:{'.' * self.level}{self.name}"

    def __str__(self) -> str:
        return "." * self.level + self.name


@dataclass(frozen=True)
class LoadedModule:
    """A module file that opened cleanly, with its declared imports."""

    path: Path
    imports: tuple[ModuleName, ...]


def _dedupe(names: list[ModuleName]) -> tuple[ModuleName, ...]:
    seen: set[tuple[str, int]] = set()
    out: list[ModuleName] = []
    for n in names:
        if (n.name, n.level) in seen:
            continue
        seen.add((n.name, n.level))
        out.append(n)
    return tuple(out)


def _source_imports(tree: ast.AST, origin: Path) -> list[ModuleName]:
    names: list[ModuleName] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                names.append(ModuleName(alias.name, 0, origin))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                names.append(ModuleName(node.module, node.level, origin))
            elif node.level:
                # from . import a, b: each name may be a sibling module
                for alias in node.names:
                    if alias.name != "*":
                        names.append(ModuleName(alias.name, node.level, origin))
    return names


def _code_imports(code: types.CodeType, origin: Path) -> list[ModuleName]:
    names: list[ModuleName] = []
    operands: list[object] = []
    for instr in dis.get_instructions(code):
        if instr.opname in ("LOAD_CONST", "LOAD_SMALL_INT"):
            operands = [*operands[-1:], instr.argval]
            continue
        if instr.opname == "IMPORT_NAME":
            # Compiled as: LOAD level; LOAD fromlist; IMPORT_NAME name
            level = operands[0] if len(operands) == 2 and isinstance(operands[0], int) else 0
            fromlist = operands[1] if len(operands) == 2 else None
            if instr.argval:
                names.append(ModuleName(instr.argval, level, origin))
            elif level and isinstance(fromlist, tuple):
                names.extend(ModuleName(n, level, origin) for n in fromlist if n != "*")
        if instr.opname != "EXTENDED_ARG":
            operands = []

    for const in code.co_consts:
        if isinstance(const, types.CodeType):
            names.extend(_code_imports(const, origin))
    return names


def _load_source(path: Path, data: bytes) -> list[ModuleName]:
    try:
        tree = ast.parse(data, filename=str(path))
    except (SyntaxError, ValueError, UnicodeDecodeError) as e:
        raise ModuleLoadError(f"Cannot parse {path}: {e}", path=path, cause=e)
    except (RecursionError, MemoryError) as e:
        # valid source nested deeper than the parser can build
        raise ModuleLoadError(
            f"Cannot parse {path}: {type(e).__name__}: {e}", path=path, cause=e
        )
    return _source_imports(tree, path)


def _load_compiled(path: Path, data: bytes) -> list[ModuleName]:
    if data[:4] != importlib.util.MAGIC_NUMBER:
        raise ModuleLoadError(
            f"Bad magic number in {path}: not compiled for this interpreter", path=path
        )
    try:
        code = marshal.loads(data[_PYC_HEADER_SIZE:])
    except (EOFError, ValueError, TypeError) as e:
        raise ModuleLoadError(f"Corrupt compiled module {path}: {e}", path=path, cause=e)
    if not isinstance(code, types.CodeType):
        raise ModuleLoadError(f"Compiled module {path} holds no code object", path=path)
    try:
        return _code_imports(code, path)
    except Exception as e:
        raise ModuleLoadError(
            f"Cannot scan compiled module {path}: {type(e).__name__}: {e}", path=path, cause=e
        )


def load_module(path: str | Path) -> LoadedModule:
    """Open a module file and enumerate the imports it declares.

    Raises:
        ModuleLoadError: The file is missing, unreadable, has an unrecognised
            suffix, or its contents cannot be parsed.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in MODULE_SUFFIXES:
        raise ModuleLoadError(f"Not a module file: {path}", path=path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise ModuleLoadError(f"File not found: {path}", path=path, cause=e)
    except OSError as e:
        raise ModuleLoadError(f"Cannot read {path}: {e}", path=path, cause=e)

    if suffix == COMPILED_SUFFIX:
        names = _load_compiled(path, data)
    else:
        names = _load_source(path, data)
    return LoadedModule(path=path, imports=_dedupe(names))
