"""Agent runtime: one configured agent serving requests.

An agent is a composition of a role prompt, a language model provider, a tool
catalog and a cost accountant. Research, analysis and writer agents differ only
in that configuration (see ``profiles``), not in code.
"""
from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Iterable, List, Optional

from .correlation import ensure_correlation_id
from .cost import CostAccountant, CostMetrics
from .errors import AgentExecutionError, StructuredError
from .llm.base import LLMProvider, ModelUsage
from .logging import bind_logger
from .loop import DEFAULT_MAX_ITERATIONS, FunctionCallLoop
from .prompt import build_prompt
from .schemas import AgentRequest, AgentResponse, TokenUsage, ToolDescriptor
from .tools.base import LocalTool
from .tools.invoker import ToolInvoker
from .tools.registry import ToolRegistry
from .tools.server import ToolServer

logger = logging.getLogger("a2a_agents.runtime")


class AgentRuntime:
    """Serves ``AgentRequest``s for one agent.

    Thread-safe: concurrent requests share the registry (read-only after
    ``initialize``) and the accountant (locked); everything else is built per
    request.

    Example:
        >>> runtime = AgentRuntime(
        ...     name="research-agent",
        ...     role_prompt="You are a research agent.",
        ...     provider=MockProvider(script=["Quantum computing uses qubits."]),
        ...     local_tools=[WEB_SEARCH],
        ... )
        >>> response = runtime.process(AgentRequest(query="What is quantum computing?"))
        >>> response.iterations
        1
    """

    def __init__(
        self,
        name: str,
        role_prompt: str,
        provider: LLMProvider,
        local_tools: Iterable[LocalTool] = (),
        tool_server: Optional[ToolServer] = None,
        accountant: Optional[CostAccountant] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        model_timeout: float = 60.0,
        tool_timeout: float = 30.0,
        max_parallel_tools: int = 8,
        log: Optional[logging.Logger] = None
    ) -> None:
        """Initialize the runtime.

        Args:
            name: Agent name reported in responses and logs
            role_prompt: Role instructions placed at the top of every prompt
            provider: Language model used by the function calling loop
            local_tools: Tools executed in-process
            tool_server: Optional remote tool server whose tools are merged in
            accountant: Cost accountant (default: one priced for ``provider.model_name``)
            max_iterations: Model call cap per request
            model_timeout: Per-call model timeout in seconds
            tool_timeout: Per-call remote tool timeout in seconds
            max_parallel_tools: Worker cap for one tool batch
            log: Base logger (default: ``a2a_agents.runtime``)
        """
        self.name = name
        self.role_prompt = role_prompt
        self._provider = provider
        self._local_tools = list(local_tools)
        self._tool_server = tool_server
        self._accountant = accountant or CostAccountant(model=provider.model_name)
        self._max_iterations = max_iterations
        self._model_timeout = model_timeout
        self._tool_timeout = tool_timeout
        self._max_parallel_tools = max_parallel_tools
        self._log = log or logger

        self._registry = ToolRegistry(log=self._log)
        self._init_lock = Lock()
        self._initialized = False

    @property
    def accountant(self) -> CostAccountant:
        return self._accountant

    @property
    def catalog(self) -> List[ToolDescriptor]:
        return self._registry.catalog

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Build the tool catalog. Idempotent.

        Raises:
            ConfigurationError: On duplicate local tool names
            ToolServerError: If the tool server cannot list its tools
        """
        with self._init_lock:
            if self._initialized:
                return
            for tool in self._local_tools:
                self._registry.register_local(tool)
            if self._tool_server is not None:
                self._registry.merge_remote(self._tool_server.list_tools())
            self._initialized = True
            self._log.info(
                "Agent %s initialized with tools: %s",
                self.name, [t.name for t in self._registry.catalog]
            )

    def shutdown(self) -> None:
        if self._tool_server is not None:
            self._tool_server.close()
        self._log.info("Agent %s shut down", self.name)

    def process(self, request: AgentRequest, timeout: Optional[float] = None) -> AgentResponse:
        """Answer one request.

        Args:
            request: The agent request; a missing or malformed correlation id
                is replaced
            timeout: Overall time budget in seconds, or None for no deadline

        Returns:
            AgentResponse with the answer, aggregate token usage of every
            model call of this request, and the tools used

        Raises:
            StructuredError: Loop failures (iteration budget, malformed model
                output, deadline, model errors), with ``correlation_id``,
                ``agent``, ``execution_time_ms``, ``model_calls`` and
                ``token_usage`` added to ``details``
            AgentExecutionError: Wraps any unexpected exception the same way
        """
        self.initialize()

        correlation_id = ensure_correlation_id(request.correlation_id)
        if correlation_id != request.correlation_id:
            request = request.model_copy(update={"correlation_id": correlation_id})
        log = bind_logger(self._log, correlation_id=correlation_id, agent=self.name)

        start = time.perf_counter()
        deadline = None if timeout is None else time.monotonic() + timeout
        usages: List[TokenUsage] = []

        def on_usage(usage: ModelUsage) -> None:
            usages.append(self._accountant.track(usage.input_tokens, usage.output_tokens))

        invoker = ToolInvoker(
            self._registry,
            tool_server=self._tool_server,
            timeout=self._tool_timeout,
            log=log
        )
        loop = FunctionCallLoop(
            self._provider,
            invoker,
            max_iterations=self._max_iterations,
            model_timeout=self._model_timeout,
            max_parallel_tools=self._max_parallel_tools,
            log=log
        )

        log.info("Processing request")
        log.debug("Query: %s", request.query)
        try:
            outcome = loop.run(
                [build_prompt(self.role_prompt, request)],
                self._registry.catalog,
                deadline=deadline,
                on_usage=on_usage
            )
        except StructuredError as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.error("Request failed: %s", e.message, extra={"error_type": type(e).__name__})
            e.add_context(**self._failure_context(correlation_id, elapsed_ms, usages))
            raise
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.exception("Unexpected error while processing request")
            raise AgentExecutionError(
                f"Agent {self.name} failed: {e}",
                details=self._failure_context(correlation_id, elapsed_ms, usages)
            ) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        token_usage = TokenUsage.aggregate(usages)
        tools_used = [record.name for record in outcome.tool_calls]

        log.info(
            "Request completed",
            extra={
                "execution_time_ms": round(elapsed_ms, 2),
                "iterations": outcome.iterations,
                "total_tokens": token_usage.total_tokens,
            }
        )
        return AgentResponse(
            correlation_id=correlation_id,
            agent_name=self.name,
            result=outcome.final_answer,
            execution_time_ms=elapsed_ms,
            token_usage=token_usage,
            tools_used=tools_used,
            iterations=outcome.iterations,
        )

    def get_metrics(self) -> CostMetrics:
        return self._accountant.get_metrics()

    def _failure_context(self, correlation_id: str, elapsed_ms: float, usages: List[TokenUsage]) -> dict:
        return {
            "correlation_id": correlation_id,
            "agent": self.name,
            "execution_time_ms": elapsed_ms,
            "model_calls": len(usages),
            "token_usage": TokenUsage.aggregate(usages).model_dump(by_alias=True),
        }
