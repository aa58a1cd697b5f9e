"""Mock LLM provider for testing.

This provider replays a scripted sequence of turns without making API calls.
Used for unit testing the function calling loop and the agent runtime.
"""
from threading import Lock
from typing import Any, List, Optional, Sequence

from ..base import LLMProvider, ModelTurn, ModelUsage
from ...errors import ModelError, ModelTimeoutError
from ...schemas import ConversationMessage, ToolCall, ToolDescriptor


class MockProvider(LLMProvider):
    """Mock LLM provider for testing.

    Each call consumes the next scripted step; once the script is exhausted
    the last step repeats. A step may be:

    - ``str``: a terminal text answer
    - a list of ``ToolCall`` / ``{"name": ..., "args": ...}`` dicts: a tool batch
    - ``None``: a malformed turn (no calls, no text)
    - a ``ModelTurn``: returned as is
    - an ``Exception`` instance: raised

    Example:
        >>> provider = MockProvider(script=[
        ...     [{"name": "web_search", "args": {"query": "quantum"}}],
        ...     "Final answer",
        ... ])
        >>> turn = provider.generate([], [])
        >>> assert turn.tool_calls[0].name == "web_search"
        >>> assert provider.generate([], []).text == "Final answer"
    """

    def __init__(
        self,
        script: Optional[List[Any]] = None,
        should_fail: bool = False,
        should_timeout: bool = False,
        input_tokens: int = 100,
        output_tokens: int = 50,
        model: str = "mock-llm-v1"
    ):
        """Initialize mock provider.

        Args:
            script: Scripted steps (default: a single "mock answer")
            should_fail: If True, raise ModelError on every call
            should_timeout: If True, raise ModelTimeoutError on every call
            input_tokens: Mock input token count per call
            output_tokens: Mock output token count per call
            model: Model name reported to the cost accountant
        """
        self._script = list(script) if script else ["mock answer"]
        self._should_fail = should_fail
        self._should_timeout = should_timeout
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self._model = model
        self._lock = Lock()
        self._position = 0
        self.calls: List[dict] = []

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolDescriptor],
        timeout: float = 60.0
    ) -> ModelTurn:
        """Return the next scripted turn.

        Records a snapshot of the messages and tool names it was called with.
        """
        with self._lock:
            self.calls.append({
                "messages": [m.model_copy(deep=True) for m in messages],
                "tools": [t.name for t in tools],
                "timeout": timeout,
            })
            step = self._script[min(self._position, len(self._script) - 1)]
            self._position += 1

        if self._should_timeout:
            raise ModelTimeoutError(
                f"Mock model request exceeded timeout of {timeout}s",
                timeout_seconds=timeout
            )
        if self._should_fail:
            raise ModelError("Mock provider configured to fail")

        return self._to_turn(step)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def model_name(self) -> str:
        """Return mock model identifier."""
        return self._model

    def _to_turn(self, step: Any) -> ModelTurn:
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, ModelTurn):
            return step
        usage = ModelUsage(input_tokens=self._input_tokens, output_tokens=self._output_tokens)
        if step is None:
            return ModelTurn(usage=usage)
        if isinstance(step, str):
            return ModelTurn(text=step, usage=usage)
        calls = [c if isinstance(c, ToolCall) else ToolCall.model_validate(c) for c in step]
        return ModelTurn(tool_calls=calls, usage=usage)
