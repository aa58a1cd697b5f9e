"""Dispatch of model-requested tool calls.

``ToolInvoker.invoke`` never raises. Unknown tools, executor exceptions,
remote timeouts and remote errors all come back as ``is_error`` results so
the function calling loop can hand them to the model and keep going.
"""
import logging
from typing import Any, Dict, Optional

from ..errors import StructuredError, ToolExecutionError, ToolNotFoundError
from ..schemas import ToolInvocationResult
from .registry import ToolRegistry
from .server import ToolServer

logger = logging.getLogger("a2a_agents.tools")


class ToolInvoker:
    def __init__(
        self,
        registry: ToolRegistry,
        tool_server: Optional[ToolServer] = None,
        timeout: float = 30.0,
        log: Optional[logging.Logger | logging.LoggerAdapter] = None
    ) -> None:
        """Initialize the invoker.

        Args:
            registry: Catalog used to resolve tool names
            tool_server: Remote tool server for ``remote`` descriptors
            timeout: Per-call timeout for remote tools in seconds
            log: Logger, usually bound to the request's correlation id
        """
        self._registry = registry
        self._tool_server = tool_server
        self._timeout = timeout
        self._log = log or logger

    def invoke(self, name: str, args: Dict[str, Any]) -> ToolInvocationResult:
        try:
            descriptor = self._registry.resolve(name)
            if descriptor.origin == "local":
                payload = self._registry.executor(name)(args)
            else:
                payload = self._invoke_remote(name, args)
        except ToolNotFoundError as e:
            self._log.warning("Model requested unknown tool %s", name)
            return ToolInvocationResult(name=name, payload={"error": e.message}, is_error=True)
        except StructuredError as e:
            self._log.warning("Tool %s failed: %s", name, e.message)
            return ToolInvocationResult(name=name, payload={"error": e.message}, is_error=True)
        except Exception as e:
            # Executors are arbitrary callables; any failure is reported to the model.
            self._log.warning("Tool %s raised %s: %s", name, type(e).__name__, e)
            return ToolInvocationResult(name=name, payload={"error": str(e) or type(e).__name__}, is_error=True)

        self._log.debug("Tool %s completed", name)
        return ToolInvocationResult(name=name, payload=payload, is_error=False)

    def _invoke_remote(self, name: str, args: Dict[str, Any]) -> Any:
        if self._tool_server is None:
            raise ToolExecutionError(name, f"No tool server connected for remote tool {name}")
        response = self._tool_server.call_tool(name, args, timeout=self._timeout)
        if response.is_error:
            raise ToolExecutionError(
                name,
                f"Remote tool {name} returned error: {response.text or response.content}"
            )
        return response.text or response.content
