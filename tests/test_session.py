"""Tests for EvaluationSession: state threading, history, reset, configuration."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from pyinteractive.evaluator import EvaluationState, PythonEvaluator
from pyinteractive.exceptions import ConfigurationError, EvaluationError
from pyinteractive.options import ScriptOptions
from pyinteractive.session import SEPARATOR, EvaluationSession


def make_session(**kwargs) -> EvaluationSession:
    return EvaluationSession(PythonEvaluator(ScriptOptions(imports=())), **kwargs)


@pytest.fixture
def session():
    return make_session()


# =============================================================================
# run
# =============================================================================


class TestRun:
    @pytest.mark.asyncio
    async def test_state_threading(self, session):
        assert await session.run("x = 5") is None
        assert await session.run("x + 1") == "6"

    @pytest.mark.asyncio
    async def test_transitions_to_initialized(self, session):
        assert not session.initialized
        await session.run("x = 5")
        assert session.initialized

    @pytest.mark.asyncio
    async def test_failed_first_run_stays_empty(self, session):
        with pytest.raises(EvaluationError):
            await session.run("1/0")
        assert not session.initialized

    @pytest.mark.asyncio
    async def test_failure_keeps_prior_state(self, session):
        await session.run("x = 5")
        with pytest.raises(EvaluationError):
            await session.run("x = 100\nundefined_name")
        assert await session.run("x") == "5"

    @pytest.mark.asyncio
    async def test_evaluator_receives_separator_and_prior_state(self):
        first = EvaluationState({}, 1)
        second = EvaluationState({}, 2)
        evaluator = AsyncMock()
        evaluator.evaluate.side_effect = [(first, None), (second, "ok")]
        session = EvaluationSession(evaluator)

        await session.run("a = 1")
        assert await session.run("a") == "ok"

        calls = evaluator.evaluate.await_args_list
        assert calls[0].args == ("a = 1" + SEPARATOR, None)
        assert calls[1].args == ("a" + SEPARATOR, first)

    @pytest.mark.asyncio
    async def test_evaluation_error_propagates_verbatim(self):
        err = EvaluationError("NameError: name 'q' is not defined")
        evaluator = AsyncMock()
        evaluator.evaluate.side_effect = err
        session = EvaluationSession(evaluator)
        with pytest.raises(EvaluationError) as exc_info:
            await session.run("q")
        assert exc_info.value is err


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_run_before_configuration_fails(self):
        session = EvaluationSession()
        assert not session.configured
        with pytest.raises(ConfigurationError):
            await session.run("1")
        assert await session.get_history() == ""

    @pytest.mark.asyncio
    async def test_configure_later(self):
        session = EvaluationSession()
        session.configure(PythonEvaluator(ScriptOptions(imports=())))
        assert session.configured
        assert await session.run("2 * 21") == "42"


# =============================================================================
# History
# =============================================================================


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_in_call_order(self, session):
        await session.run("a = 1")
        await session.run("b = 2")
        await session.run("a + b")
        assert await session.get_history() == "a = 1\nb = 2\na + b\n"

    @pytest.mark.asyncio
    async def test_failed_fragments_recorded_by_default(self, session):
        await session.run("a = 1")
        with pytest.raises(EvaluationError):
            await session.run("1/0")
        await session.run("b = 2")
        assert await session.get_history() == "a = 1\n1/0\nb = 2\n"

    @pytest.mark.asyncio
    async def test_failed_fragments_skipped_when_disabled(self):
        session = make_session(record_failed=False)
        await session.run("a = 1")
        with pytest.raises(EvaluationError):
            await session.run("1/0")
        await session.run("b = 2")
        assert await session.get_history() == "a = 1\nb = 2\n"

    @pytest.mark.asyncio
    async def test_empty_history(self, session):
        assert await session.get_history() == ""


# =============================================================================
# reset
# =============================================================================


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_history(self, session):
        await session.run("x = 1")
        await session.reset()
        assert await session.get_history() == ""
        assert not session.initialized

    @pytest.mark.asyncio
    async def test_reset_clears_state(self, session):
        await session.run("x = 1")
        await session.reset()
        with pytest.raises(EvaluationError, match="NameError"):
            await session.run("x")

    @pytest.mark.asyncio
    async def test_run_after_reset_matches_fresh_session(self, session):
        await session.run("x = 1")
        await session.reset()
        fresh = make_session()
        assert await session.run("y = 2\ny * 3") == await fresh.run("y = 2\ny * 3")
        assert await session.get_history() == await fresh.get_history()

    @pytest.mark.asyncio
    async def test_reset_on_empty_session(self, session):
        await session.reset()
        await session.reset()
        assert await session.get_history() == ""


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.asyncio
async def test_concurrent_runs_are_serialized(session):
    await session.run("counter = 0")
    fragments = [f"await asyncio.sleep(0)\ncounter += {i}" for i in range(1, 11)]
    await session.run("import asyncio")
    await asyncio.gather(*(session.run(f) for f in fragments))
    assert await session.run("counter") == str(sum(range(1, 11)))
    history = await session.get_history()
    for fragment in fragments:
        assert fragment + SEPARATOR in history
