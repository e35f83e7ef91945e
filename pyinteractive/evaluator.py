"""Async Python evaluation with top-level await, stdout capture and state threading."""

from __future__ import annotations

import ast
import asyncio
import builtins
import importlib
import logging
import sys
import traceback
import types
from dataclasses import dataclass, field
from io import StringIO
from typing import Protocol

from pyinteractive.exceptions import EvaluationError
from pyinteractive.options import ScriptOptions

logger = logging.getLogger(__name__)

INTERACTIVE_MODULE = "__interactive__"


@dataclass(frozen=True)
class EvaluationState:
    """Opaque snapshot of the bindings accumulated so far.

    Successive states share one namespace so functions defined earlier see
    globals bound later, as in an interactive interpreter.
    """

    namespace: dict = field(repr=False)
    generation: int = 0


class Evaluator(Protocol):
    async def evaluate(
        self, code: str, prior: EvaluationState | None
    ) -> tuple[EvaluationState, str | None]: ...


def _interactive_module() -> types.ModuleType:
    """Register a fresh module whose __dict__ is the evaluation namespace.

    Classes defined interactively get __module__ == INTERACTIVE_MODULE, so
    pickling and get_type_hints find them through sys.modules. A reset
    replaces the registered module.
    """
    mod = types.ModuleType(INTERACTIVE_MODULE)
    mod.__builtins__ = builtins
    sys.modules[INTERACTIVE_MODULE] = mod
    return mod


def seed(imports: tuple[str, ...] | list[str]) -> dict:
    """Build a fresh namespace with the default imports bound."""
    ns = _interactive_module().__dict__
    for name in imports:
        top = name.partition(".")[0]
        try:
            importlib.import_module(name)
            ns[top] = importlib.import_module(top)
        except ImportError as e:
            logger.warning(f"Could not import {name} into the namespace: {e}")
    return ns


def install_search_roots(roots) -> None:
    """Put reference import roots at the front of sys.path, keeping their order."""
    for root in reversed(list(roots)):
        entry = str(root)
        if entry not in sys.path:
            sys.path.insert(0, entry)


def _compile_fragment(code: str) -> tuple[types.CodeType, bool]:
    """Compile a fragment, binding a trailing expression statement to ``_``.

    Returns the code object and whether the fragment ends in an expression.
    """
    tree = ast.parse(code, mode="exec")
    body = tree.body
    ends_in_expr = bool(body) and isinstance(body[-1], ast.Expr)
    if ends_in_expr:
        body[-1] = ast.copy_location(
            ast.Assign(targets=[ast.Name(id="_", ctx=ast.Store())], value=body[-1].value),
            body[-1],
        )
        ast.fix_missing_locations(tree)
    compiled = compile(
        tree, f"<{INTERACTIVE_MODULE}>", "exec", flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT
    )
    return compiled, ends_in_expr


async def async_exec(code: str, namespace: dict) -> tuple[object | None, str]:
    """Run a fragment in namespace, awaiting it when it uses top-level await.

    Returns (value, stdout): the trailing expression's value or None, and
    whatever the fragment printed. Stdout is captured since the MCP transport
    owns the real one.
    """
    compiled, ends_in_expr = _compile_fragment(code)
    buf = StringIO()
    real_stdout, sys.stdout = sys.stdout, buf
    try:
        pending = types.FunctionType(compiled, namespace)()
        if asyncio.iscoroutine(pending):
            await pending
    finally:
        sys.stdout = real_stdout
    return (namespace.get("_") if ends_in_expr else None), buf.getvalue()


def _describe(exc: BaseException) -> str:
    return "".join(traceback.format_exception_only(type(exc), exc)).strip()


def _restore(namespace: dict, snapshot: dict) -> None:
    # in place: the dict is also the registered module's __dict__
    namespace.clear()
    namespace.update(snapshot)


class PythonEvaluator:
    """Evaluator running code in a persistent Python namespace.

    A fragment that fails leaves the namespace as it was before the fragment
    started (top-level bindings are restored; objects mutated in place stay
    mutated).
    """

    def __init__(self, options: ScriptOptions) -> None:
        self.options = options
        self._roots_installed = False

    def new_namespace(self) -> dict:
        if not self._roots_installed:
            install_search_roots(self.options.search_roots)
            self._roots_installed = True
        return seed(self.options.imports)

    async def evaluate(
        self, code: str, prior: EvaluationState | None
    ) -> tuple[EvaluationState, str | None]:
        if prior is None:
            namespace = self.new_namespace()
            generation = 0
        else:
            namespace = prior.namespace
            generation = prior.generation

        snapshot = dict(namespace)
        try:
            value, captured = await async_exec(code, namespace)
        except (Exception, SystemExit) as e:
            _restore(namespace, snapshot)
            raise EvaluationError(_describe(e), code=code, cause=e)
        except BaseException:
            # cancellation and interrupts propagate untouched
            _restore(namespace, snapshot)
            raise

        if value is None and not captured:
            text = None
        else:
            text = captured + ("" if value is None else str(value))
        return EvaluationState(namespace, generation + 1), text
