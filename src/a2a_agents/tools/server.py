"""Client for remote tool servers.

Tool servers speak JSON-RPC 2.0 over HTTP POST with MCP-style methods:

    tools/list -> {"tools": [{"name", "description", "inputSchema"}, ...]}
    tools/call {"name", "arguments"} -> {"content": [{"type": "text", "text": ...}], "isError": bool}
"""
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import requests

from ..errors import TimeoutError as StructuredTimeoutError, ToolServerError
from ..schemas import ToolDescriptor

logger = logging.getLogger("a2a_agents.tools.server")


@dataclass(frozen=True)
class ToolServerResponse:
    content: List[Dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @property
    def text(self) -> str:
        """Text items joined by newlines (empty if none)."""
        return "\n".join(
            item["text"] for item in self.content
            if item.get("type") == "text" and item.get("text")
        )


class ToolServer(Protocol):
    def list_tools(self) -> List[ToolDescriptor]:
        ...

    def call_tool(self, name: str, args: Dict[str, Any], timeout: float) -> ToolServerResponse:
        ...

    def close(self) -> None:
        ...


class HttpToolServer:
    """JSON-RPC tool server client over ``requests``.

    Example:
        >>> server = HttpToolServer("http://localhost:3010/mcp")
        >>> tools = server.list_tools()
        >>> response = server.call_tool("web_search", {"query": "quantum"}, timeout=10.0)
        >>> print(response.text)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._http = session or requests
        self._ids = itertools.count(1)

    def list_tools(self) -> List[ToolDescriptor]:
        """Fetch the server's tool descriptors.

        Raises:
            ToolServerError: If the server is unreachable or replies with an error
        """
        result = self._rpc("tools/list", {}, self._timeout)
        tools = [
            ToolDescriptor(
                name=raw["name"],
                description=raw.get("description") or "",
                parameters=raw.get("inputSchema") or {"type": "object", "properties": {}},
                origin="remote",
            )
            for raw in result.get("tools", [])
        ]
        logger.debug("Listed remote tools url=%s tools=%s", self.url, [t.name for t in tools])
        return tools

    def call_tool(self, name: str, args: Dict[str, Any], timeout: float) -> ToolServerResponse:
        """Call a tool on the server.

        Raises:
            TimeoutError: If the call exceeds ``timeout``
            ToolServerError: On transport or protocol errors
        """
        result = self._rpc("tools/call", {"name": name, "arguments": args}, timeout)
        return ToolServerResponse(
            content=list(result.get("content") or []),
            is_error=bool(result.get("isError")),
        )

    def close(self) -> None:
        if self._http is not requests:
            self._http.close()

    def _rpc(self, method: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self._http.post(self.url, json=body, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise StructuredTimeoutError(
                f"Tool server {method} exceeded timeout of {timeout}s: {e}",
                details={"method": method, "timeout_seconds": timeout}
            )
        except requests.exceptions.RequestException as e:
            raise ToolServerError(f"Tool server request failed: {e}", details={"method": method})

        if response.status_code != 200:
            raise ToolServerError(
                f"Tool server returned status {response.status_code}: {response.text}",
                details={"method": method, "status_code": response.status_code}
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ToolServerError(f"Invalid JSON from tool server: {e}", details={"method": method})

        if data.get("error"):
            error = data["error"] if isinstance(data["error"], dict) else {"message": data["error"]}
            raise ToolServerError(
                f"Tool server error: {error.get('message')}",
                details={"method": method, "code": error.get("code")}
            )
        return data.get("result") or {}
