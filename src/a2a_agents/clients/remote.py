"""HTTP client for peer agents.

Calls another agent's process endpoint with bounded retries and classifies
every failure into a ``RemoteCallError`` kind:

    timeout           requests Timeout, HTTP 408 / 504        retried
    connection        connection refused / reset              retried
    rate_limit        HTTP 429                                retried
    server_busy       HTTP 502 / 503                          retried
    client_error      any other 4xx (400 validation included) not retried
    server_error      any other 5xx                           not retried
    invalid_response  unparseable success body                not retried
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from ..correlation import CORRELATION_HEADER, ensure_correlation_id
from ..errors import RemoteCallError
from ..logging import bind_logger
from ..retry import LoggingRetryObserver, RetryObserver, RetryPolicy, retry_call
from ..schemas import AgentRequest, AgentResponse

logger = logging.getLogger("a2a_agents.clients.remote")

REQUEST_TIMEOUT_HEADER = "x-request-timeout"

_STATUS_KINDS = {
    408: "timeout",
    429: "rate_limit",
    502: "server_busy",
    503: "server_busy",
    504: "timeout",
}


def classify_status(status_code: int) -> str:
    """Map a non-200 HTTP status to a failure kind."""
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if 400 <= status_code < 500:
        return "client_error"
    if status_code >= 500:
        return "server_error"
    return "invalid_response"


def _error_body(response) -> Optional[Dict[str, Any]]:
    """The peer's structured error body, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class RemoteAgentClient:
    """Calls one remote agent.

    Stateless per call, so one client can be shared across threads. Without
    an injected session every request goes through the module-level
    ``requests`` functions, which open a fresh session per call.

    Example:
        >>> client = RemoteAgentClient(
        ...     "analysis-agent",
        ...     "http://localhost:3002",
        ...     "/api/v1/analysis/process",
        ... )
        >>> response = client.call(AgentRequest(query="Analyze this"))
        >>> client.health_check()
        True
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        process_path: str,
        health_path: str = "/health",
        timeout: float = 30.0,
        health_timeout: float = 5.0,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        observer: Optional[RetryObserver] = None,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.Logger] = None
    ) -> None:
        """Initialize the client.

        Args:
            name: Agent name used in logs and error details
            base_url: Agent base URL, e.g. ``http://localhost:3002``
            process_path: Path of the agent's process endpoint
            health_path: Path of the agent's health endpoint
            timeout: Per-attempt timeout in seconds
            health_timeout: Timeout for health probes in seconds
            retry_policy: Backoff parameters (default: 3 retries, 1s..10s, x2)
            session: requests session (injectable for tests); the caller
                owns it and must not share it across threads
            observer: Default observer for failed attempts (default: logs them)
            sleep: Sleep function between attempts (injectable for tests)
            log: Base logger
        """
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.process_path = process_path
        self.health_path = health_path
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._policy = retry_policy or RetryPolicy()
        self._http = session or requests
        self._log = log or logger
        self._observer = observer
        self._sleep = sleep

    @property
    def process_url(self) -> str:
        return f"{self.base_url}{self.process_path}"

    def call(
        self,
        request: AgentRequest,
        deadline: Optional[float] = None,
        observer: Optional[RetryObserver] = None
    ) -> AgentResponse:
        """Send a request to the agent, retrying transient failures.

        Args:
            request: The request; a missing correlation id is generated
            deadline: Absolute ``time.monotonic()`` deadline, or None
            observer: Observer for this call's failed attempts

        Returns:
            The agent's AgentResponse

        Raises:
            RemoteCallError: Final failure, with ``details["attempts"]``
        """
        correlation_id = ensure_correlation_id(request.correlation_id)
        if correlation_id != request.correlation_id:
            request = request.model_copy(update={"correlation_id": correlation_id})
        log = bind_logger(self._log, correlation_id=correlation_id, agent=self.name)
        observer = observer or self._observer or LoggingRetryObserver(log)
        body = request.to_wire()

        try:
            response = retry_call(
                lambda attempt: self._attempt(body, correlation_id, deadline, attempt, log),
                self._policy,
                observer=observer,
                deadline=deadline,
                sleep=self._sleep
            )
        except RemoteCallError as e:
            e.add_context(agent=self.name, url=self.process_url, correlation_id=correlation_id)
            log.error("Call failed after %d attempt(s): %s", len(e.attempts), e.message)
            raise

        log.info("Call succeeded", extra={"execution_time_ms": round(response.execution_time_ms, 2)})
        return response

    def health_check(self) -> bool:
        """Probe the agent's health endpoint. Never raises."""
        url = f"{self.base_url}{self.health_path}"
        try:
            response = self._http.get(url, timeout=self._health_timeout)
        except requests.exceptions.RequestException as e:
            self._log.warning("Health check failed for %s: %s", self.name, e)
            return False
        return response.status_code == 200

    def close(self) -> None:
        if self._http is not requests:
            self._http.close()

    def _attempt(
        self,
        body: Dict[str, Any],
        correlation_id: str,
        deadline: Optional[float],
        attempt: int,
        log: logging.LoggerAdapter
    ) -> AgentResponse:
        timeout = self._timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RemoteCallError(f"Deadline exceeded before calling {self.name}", kind="timeout")
            timeout = min(timeout, remaining)

        headers = {
            CORRELATION_HEADER: correlation_id,
            REQUEST_TIMEOUT_HEADER: f"{timeout:.3f}",
        }
        log.debug("Attempt %d: POST %s (timeout %.2fs)", attempt, self.process_url, timeout)
        try:
            response = self._http.post(self.process_url, json=body, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteCallError(f"{self.name} timed out after {timeout:.2f}s: {e}", kind="timeout")
        except requests.exceptions.ConnectionError as e:
            raise RemoteCallError(f"Could not connect to {self.name}: {e}", kind="connection")
        except requests.exceptions.RequestException as e:
            raise RemoteCallError(f"Request to {self.name} failed: {e}", kind="connection")

        if response.status_code != 200:
            details = {}
            remote_error = _error_body(response)
            if remote_error is not None:
                details["remote_error"] = remote_error
            raise RemoteCallError(
                f"{self.name} returned status {response.status_code}: {response.text[:500]}",
                kind=classify_status(response.status_code),
                status_code=response.status_code,
                details=details
            )

        try:
            return AgentResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise RemoteCallError(
                f"Invalid response from {self.name}: {e}",
                kind="invalid_response",
                status_code=response.status_code
            )
