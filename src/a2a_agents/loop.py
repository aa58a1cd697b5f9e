"""Function calling loop between a language model and its tools.

States:
- AWAITING_MODEL: send the full history and the tool catalog to the model.
  A turn with tool calls moves to EXECUTING_TOOLS, a text answer terminates
  with success, a turn with neither terminates as malformed.
- EXECUTING_TOOLS: run every call of the batch concurrently, wait for all of
  them, append one ``model`` message with the calls and one ``user`` message
  with the results (same order), then go back to AWAITING_MODEL.
- TERMINATED: success (LoopResult returned), exhausted
  (IterationBudgetExceededError), malformed (ModelMalformedResponseError) or
  deadline (DeadlineExceededError).

Iterations count model calls, so a successful run always reports
``1 <= iterations <= max_iterations``.

Example:
    >>> loop = FunctionCallLoop(provider, ToolInvoker(registry), max_iterations=5)
    >>> outcome = loop.run([build_prompt(role_prompt, request)], registry.catalog)
    >>> print(outcome.final_answer, outcome.iterations)
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import (
    ConfigurationError,
    DeadlineExceededError,
    IterationBudgetExceededError,
    ModelMalformedResponseError,
    ModelTimeoutError,
)
from .llm.base import LLMProvider, ModelUsage
from .schemas import ConversationMessage, ToolCall, ToolDescriptor, ToolInvocationResult
from .tools.invoker import ToolInvoker

logger = logging.getLogger("a2a_agents.loop")

DEFAULT_MAX_ITERATIONS = 10


class LoopState(Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    TERMINATED = "terminated"


class TerminationReason(Enum):
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    MALFORMED = "malformed"
    DEADLINE = "deadline"


@dataclass(frozen=True)
class ToolCallRecord:
    name: str
    args: Dict[str, Any]
    result: ToolInvocationResult


@dataclass
class LoopResult:
    """Outcome of a successful run.

    Attributes:
        final_answer: The model's terminal text answer
        tool_calls: Every (name, args, result) across the run, in request order
        iterations: Number of model calls made
        usage: Token counts of each model call, in call order
        messages: Full conversation history including the prompt
    """
    final_answer: str
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    iterations: int = 0
    usage: List[ModelUsage] = field(default_factory=list)
    messages: List[ConversationMessage] = field(default_factory=list)
    reason: TerminationReason = TerminationReason.SUCCESS


class FunctionCallLoop:
    """Drives the model/tool exchange until an answer or a fatal termination."""

    def __init__(
        self,
        provider: LLMProvider,
        invoker: ToolInvoker,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        model_timeout: float = 60.0,
        max_parallel_tools: int = 8,
        log: Optional[logging.Logger | logging.LoggerAdapter] = None
    ) -> None:
        """Initialize the loop.

        Args:
            provider: Language model collaborator
            invoker: Tool invoker bound to the agent's catalog
            max_iterations: Cap on model calls per run (default: 10)
            model_timeout: Per-call model timeout in seconds
            max_parallel_tools: Worker cap for one tool batch
            log: Logger, usually bound to the request's correlation id

        Raises:
            ConfigurationError: If max_iterations or max_parallel_tools < 1
        """
        if max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1", details={"max_iterations": max_iterations})
        if max_parallel_tools < 1:
            raise ConfigurationError(
                "max_parallel_tools must be at least 1",
                details={"max_parallel_tools": max_parallel_tools}
            )
        self._provider = provider
        self._invoker = invoker
        self.max_iterations = max_iterations
        self._model_timeout = model_timeout
        self._max_parallel_tools = max_parallel_tools
        self._log = log or logger

    def run(
        self,
        initial_messages: Sequence[ConversationMessage],
        catalog: Sequence[ToolDescriptor],
        deadline: Optional[float] = None,
        on_usage: Optional[Callable[[ModelUsage], None]] = None
    ) -> LoopResult:
        """Run until the model answers.

        Args:
            initial_messages: Opening conversation (usually one prompt message)
            catalog: Tool descriptors sent to the model on every call
            deadline: Absolute ``time.monotonic()`` deadline, or None
            on_usage: Called with each model call's token counts as soon as
                the call returns, before the turn is interpreted

        Returns:
            LoopResult with the answer, tool call history and per-call usage

        Raises:
            ModelMalformedResponseError: Model returned neither calls nor text
            IterationBudgetExceededError: More than ``max_iterations`` model calls needed
            DeadlineExceededError: ``deadline`` passed before an answer
            ModelError: Provider failures propagate unchanged
        """
        messages = list(initial_messages)
        records: List[ToolCallRecord] = []
        usages: List[ModelUsage] = []
        pending: List[ToolCall] = []
        iteration = 0
        state = LoopState.AWAITING_MODEL

        while True:
            if state is LoopState.AWAITING_MODEL:
                if iteration >= self.max_iterations:
                    self._log.error("Function calling loop exceeded max iterations (%d)", self.max_iterations)
                    raise IterationBudgetExceededError(
                        self.max_iterations,
                        details={
                            "termination": TerminationReason.EXHAUSTED.value,
                            "tool_calls": len(records),
                        }
                    )
                iteration += 1
                self._log.debug("Function calling iteration %d (%d messages)", iteration, len(messages))

                turn = self._call_model(messages, catalog, deadline, iteration)
                usages.append(turn.usage)
                if on_usage is not None:
                    on_usage(turn.usage)

                if turn.has_tool_calls:
                    pending = list(turn.tool_calls)
                    state = LoopState.EXECUTING_TOOLS
                elif turn.has_text:
                    self._log.info("Received final answer after %d iteration(s)", iteration)
                    return LoopResult(
                        final_answer=turn.text,
                        tool_calls=records,
                        iterations=iteration,
                        usage=usages,
                        messages=messages,
                    )
                else:
                    self._log.warning("Model returned neither tool calls nor a text response")
                    raise ModelMalformedResponseError(
                        "Model returned neither tool calls nor a text response",
                        details={
                            "termination": TerminationReason.MALFORMED.value,
                            "iteration": iteration,
                        }
                    )
            else:
                self._log.info("Executing tool calls: %s", [c.name for c in pending])
                results = self._execute_batch(pending, deadline)
                messages.append(ConversationMessage.from_tool_calls(pending))
                messages.append(ConversationMessage.from_tool_results(results))
                records.extend(
                    ToolCallRecord(name=call.name, args=call.args, result=result)
                    for call, result in zip(pending, results)
                )
                pending = []
                state = LoopState.AWAITING_MODEL

    def _call_model(self, messages, catalog, deadline: Optional[float], iteration: int):
        timeout = self._model_timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self._deadline_error("Deadline exceeded before model call", iteration=iteration)
            timeout = min(timeout, remaining)
        try:
            return self._provider.generate(messages, catalog, timeout=timeout)
        except ModelTimeoutError as e:
            if deadline is not None and time.monotonic() >= deadline:
                raise self._deadline_error("Deadline exceeded during model call", iteration=iteration) from e
            raise

    def _execute_batch(self, calls: List[ToolCall], deadline: Optional[float]) -> List[ToolInvocationResult]:
        """Fan out one batch and fan in the results in request order."""
        pool = ThreadPoolExecutor(
            max_workers=min(len(calls), self._max_parallel_tools),
            thread_name_prefix="tool-call"
        )
        try:
            futures = [pool.submit(self._invoker.invoke, call.name, call.args) for call in calls]
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(futures, timeout=timeout)
        finally:
            # Past the deadline we stop waiting; running calls are abandoned, not cancelled.
            pool.shutdown(wait=False, cancel_futures=True)

        if not_done:
            pending = [call.name for call, f in zip(calls, futures) if f in not_done]
            raise self._deadline_error(
                f"Deadline exceeded while waiting for {len(pending)} tool call(s)",
                pending_tools=pending
            )
        return [f.result() for f in futures]

    def _deadline_error(self, message: str, **details: Any) -> DeadlineExceededError:
        self._log.error(message)
        details["termination"] = TerminationReason.DEADLINE.value
        return DeadlineExceededError(message, details=details)
