"""Pytest fixtures and configuration.

Provides shared fixtures and fakes. No test touches the network: HTTP
collaborators are replaced with ``FakeSession``.
"""
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

_NO_JSON = object()


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, json_data: Any = _NO_JSON, text: str = ""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self) -> Any:
        if self._json is _NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._json


Step = Union[FakeResponse, BaseException, Callable[..., FakeResponse]]


class FakeSession:
    """Replays scripted responses for ``post`` and ``get``.

    Each step is a FakeResponse, an exception to raise, or a callable taking
    the call's keyword arguments. The last step repeats once the script runs
    out. Every call is recorded in ``calls``.
    """

    def __init__(self, post: Optional[List[Step]] = None, get: Optional[List[Step]] = None):
        self._scripts = {"post": list(post or []), "get": list(get or [])}
        self._positions = {"post": 0, "get": 0}
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("post", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("get", url, kwargs)

    def close(self) -> None:
        self.closed = True

    def _next(self, method: str, url: str, kwargs: dict) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        script = self._scripts[method]
        if not script:
            raise requests.exceptions.ConnectionError(f"No scripted response for {method.upper()} {url}")
        step = script[min(self._positions[method], len(script) - 1)]
        self._positions[method] += 1
        if isinstance(step, BaseException):
            raise step
        if callable(step) and not isinstance(step, FakeResponse):
            return step(url=url, **kwargs)
        return step


def agent_response_json(result: Any = "ok", correlation_id: str = "", agent_name: str = "agent",
                        input_tokens: int = 100, output_tokens: int = 50, cost: float = 0.0) -> dict:
    """Camel-case AgentResponse body as an agent service would send it."""
    return {
        "correlationId": correlation_id,
        "agentName": agent_name,
        "result": result,
        "executionTimeMs": 12.5,
        "tokenUsage": {
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "totalTokens": input_tokens + output_tokens,
            "estimatedCost": cost,
        },
        "toolsUsed": [],
        "iterations": 1,
    }


@pytest.fixture
def no_sleep() -> List[float]:
    """Collects requested backoff delays instead of sleeping.

    Pass ``no_sleep.append`` as the ``sleep`` argument.
    """
    return []


@pytest.fixture
def echo_tool():
    from a2a_agents.tools.base import LocalTool

    return LocalTool(
        name="echo",
        description="Echo the arguments back",
        execute=lambda args: {"echo": args},
        parameters={"type": "object", "properties": {"text": {"type": "string"}}},
    )


@pytest.fixture
def failing_tool():
    from a2a_agents.tools.base import LocalTool

    def boom(args):
        raise RuntimeError("tool exploded")

    return LocalTool(name="boom", description="Always fails", execute=boom)
