"""Tests for async_exec expression capture and the persistent PythonEvaluator."""

from __future__ import annotations

import asyncio
import sys

import pytest

from pyinteractive.evaluator import (
    INTERACTIVE_MODULE,
    EvaluationState,
    PythonEvaluator,
    async_exec,
    install_search_roots,
    seed,
)
from pyinteractive.exceptions import EvaluationError
from pyinteractive.options import ScriptOptions
from pyinteractive.references import Reference


@pytest.fixture
def evaluator():
    return PythonEvaluator(ScriptOptions(references=(), imports=("math",)))


# --- async_exec ---


@pytest.mark.asyncio
async def test_expr_returns_value():
    result, stdout = await async_exec("1 + 1", {})
    assert result == 2
    assert stdout == ""


@pytest.mark.asyncio
async def test_assignment_returns_none():
    ns = {}
    result, stdout = await async_exec("x = 42", ns)
    assert result is None
    assert ns["x"] == 42


@pytest.mark.asyncio
async def test_multiline_last_expr():
    result, _ = await async_exec("x = 10\nx + 5", {})
    assert result == 15


@pytest.mark.asyncio
async def test_print_captures_stdout():
    result, stdout = await async_exec("print('hello')", {})
    assert result is None
    assert stdout == "hello\n"


@pytest.mark.asyncio
async def test_top_level_await():
    ns = {"asyncio": asyncio}
    result, _ = await async_exec("await asyncio.sleep(0) or 'done'", ns)
    assert result == "done"


@pytest.mark.asyncio
async def test_stdout_restored_after_error():
    before = sys.stdout
    with pytest.raises(ZeroDivisionError):
        await async_exec("print('x')\n1/0", {})
    assert sys.stdout is before


# --- seeding ---


def test_seed_binds_imports():
    ns = seed(("math", "os.path"))
    assert ns["math"].sqrt(4) == 2
    assert ns["os"].path.join("a", "b")
    assert ns["__name__"] == INTERACTIVE_MODULE


def test_seed_skips_failed_import(caplog):
    with caplog.at_level("WARNING", logger="pyinteractive.evaluator"):
        ns = seed(("math", "no_such_module_pyinteractive"))
    assert "math" in ns
    assert "no_such_module_pyinteractive" not in ns
    assert any("no_such_module_pyinteractive" in r.getMessage() for r in caplog.records)


def test_install_search_roots_front_and_once(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "path", ["/existing"])
    a, b = tmp_path / "a", tmp_path / "b"
    install_search_roots([a, b])
    install_search_roots([a, b])
    assert sys.path == [str(a), str(b), "/existing"]


# --- PythonEvaluator ---


@pytest.mark.asyncio
async def test_first_evaluation_creates_state(evaluator):
    state, result = await evaluator.evaluate("x = 5\n", None)
    assert isinstance(state, EvaluationState)
    assert state.generation == 1
    assert result is None


@pytest.mark.asyncio
async def test_state_threading(evaluator):
    state, _ = await evaluator.evaluate("x = 5\n", None)
    state, result = await evaluator.evaluate("x + 1\n", state)
    assert result == "6"
    assert state.generation == 2


@pytest.mark.asyncio
async def test_default_imports_available(evaluator):
    _, result = await evaluator.evaluate("math.sqrt(16)\n", None)
    assert result == "4.0"


@pytest.mark.asyncio
async def test_functions_see_later_globals(evaluator):
    state, _ = await evaluator.evaluate("def f():\n    return y\n", None)
    state, _ = await evaluator.evaluate("y = 3\n", state)
    _, result = await evaluator.evaluate("f()\n", state)
    assert result == "3"


@pytest.mark.asyncio
async def test_stdout_and_value_combined(evaluator):
    _, result = await evaluator.evaluate("print('hi')\n'there'\n", None)
    assert result == "hi\nthere"


@pytest.mark.asyncio
async def test_stdout_only(evaluator):
    _, result = await evaluator.evaluate("print('hi')\n", None)
    assert result == "hi\n"


@pytest.mark.asyncio
async def test_none_expression_is_no_result(evaluator):
    _, result = await evaluator.evaluate("None\n", None)
    assert result is None


@pytest.mark.asyncio
async def test_empty_string_value_is_a_result(evaluator):
    _, result = await evaluator.evaluate("''\n", None)
    assert result == ""


@pytest.mark.asyncio
async def test_runtime_error_raises_evaluation_error(evaluator):
    with pytest.raises(EvaluationError) as exc_info:
        await evaluator.evaluate("1/0\n", None)
    err = exc_info.value
    assert "ZeroDivisionError" in str(err)
    assert isinstance(err.__cause__, ZeroDivisionError)
    assert err.code == "1/0\n"


@pytest.mark.asyncio
async def test_syntax_error_raises_evaluation_error(evaluator):
    with pytest.raises(EvaluationError, match="SyntaxError"):
        await evaluator.evaluate("def broken(:\n", None)


@pytest.mark.asyncio
async def test_system_exit_is_evaluation_error(evaluator):
    with pytest.raises(EvaluationError, match="SystemExit"):
        await evaluator.evaluate("raise SystemExit(3)\n", None)


@pytest.mark.asyncio
async def test_failure_rolls_back_bindings(evaluator):
    state, _ = await evaluator.evaluate("x = 1\n", None)
    with pytest.raises(EvaluationError):
        await evaluator.evaluate("x = 2\nz = 3\n1/0\n", state)
    _, result = await evaluator.evaluate("(x, 'z' in globals())\n", state)
    assert result == "(1, False)"


@pytest.mark.asyncio
async def test_references_importable(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "path", list(sys.path))
    (tmp_path / "helper_mod_pyinteractive.py").write_text("VALUE = 41\n")
    ref = Reference.from_path(tmp_path / "helper_mod_pyinteractive.py")
    ev = PythonEvaluator(ScriptOptions(references=(ref,), imports=()))
    try:
        _, result = await ev.evaluate(
            "import helper_mod_pyinteractive\nhelper_mod_pyinteractive.VALUE + 1\n", None
        )
    finally:
        sys.modules.pop("helper_mod_pyinteractive", None)
    assert result == "42"


@pytest.mark.asyncio
async def test_namespace_is_registered_module(evaluator):
    state, _ = await evaluator.evaluate("class Point:\n    pass\n", None)
    module = sys.modules[INTERACTIVE_MODULE]
    assert module.__dict__ is state.namespace
    assert module.Point.__module__ == INTERACTIVE_MODULE


@pytest.mark.asyncio
async def test_interactive_classes_pickle(evaluator):
    state, _ = await evaluator.evaluate("class Point:\n    x = 3\n", None)
    _, result = await evaluator.evaluate(
        "import pickle\ntype(pickle.loads(pickle.dumps(Point()))) is Point\n", state
    )
    assert result == "True"


@pytest.mark.asyncio
async def test_failure_rollback_visible_through_module(evaluator):
    state, _ = await evaluator.evaluate("x = 1\n", None)
    with pytest.raises(EvaluationError):
        await evaluator.evaluate("x = 2\nz = 3\n1/0\n", state)
    module = sys.modules[INTERACTIVE_MODULE]
    assert module.x == 1
    assert not hasattr(module, "z")


@pytest.mark.asyncio
async def test_cancellation_rolls_back_and_propagates(evaluator):
    state, _ = await evaluator.evaluate("import asyncio\nx = 1\n", None)
    with pytest.raises(asyncio.CancelledError):
        await evaluator.evaluate("x = 2\nz = 3\nraise asyncio.CancelledError()\n", state)
    _, result = await evaluator.evaluate("(x, 'z' in globals())\n", state)
    assert result == "(1, False)"
