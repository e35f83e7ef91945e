"""EvaluationSession: accumulated evaluation state plus the code history."""

from __future__ import annotations

import asyncio
import logging

from pyinteractive.evaluator import EvaluationState, Evaluator
from pyinteractive.exceptions import ConfigurationError, EvaluationError

logger = logging.getLogger(__name__)

SEPARATOR = "\n"


class EvaluationSession:
    """Threads evaluation state across independently arriving requests.

    The session is Empty until the first successful run and Initialized after.
    run, reset and get_history are serialized by one lock.

    Args:
        evaluator: The configured evaluator. Runs fail with ConfigurationError
            until one is supplied here or through configure().
        record_failed: Append a fragment to the history before evaluating it,
            so failed fragments are kept too. When False, only fragments that
            evaluated successfully are recorded.
    """

    def __init__(self, evaluator: Evaluator | None = None, *, record_failed: bool = True) -> None:
        self._evaluator = evaluator
        self.record_failed = record_failed
        self._state: EvaluationState | None = None
        self._history: list[str] = []
        self._lock = asyncio.Lock()

    def configure(self, evaluator: Evaluator) -> None:
        self._evaluator = evaluator

    @property
    def configured(self) -> bool:
        return self._evaluator is not None

    @property
    def initialized(self) -> bool:
        return self._state is not None

    async def run(self, code: str) -> str | None:
        """Evaluate code against the accumulated state.

        Returns:
            The textual result, or None when the fragment produced none.

        Raises:
            ConfigurationError: No evaluator has been configured.
            EvaluationError: The fragment failed; the prior state stays valid.
        """
        async with self._lock:
            if self._evaluator is None:
                raise ConfigurationError("Evaluator is not configured; build script options first")

            code += SEPARATOR
            if self.record_failed:
                self._history.append(code)

            try:
                state, result = await self._evaluator.evaluate(code, self._state)
            except EvaluationError as e:
                logger.info(f"Evaluation failed: {e}")
                raise

            self._state = state
            if not self.record_failed:
                self._history.append(code)
            return result

    async def reset(self) -> None:
        """Drop all state and history."""
        async with self._lock:
            self._state = None
            self._history.clear()
        logger.debug("Evaluation context cleared")

    async def get_history(self) -> str:
        async with self._lock:
            return "".join(self._history)
