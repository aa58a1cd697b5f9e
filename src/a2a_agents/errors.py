"""Structured Error Taxonomy for the agent runtime and workflow orchestrator.

This module provides the error classification used across the system:
- Hierarchical error categories (Validation, Tool, Model, Remote, Workflow, etc.)
- Severity levels (INFO, WARNING, ERROR, CRITICAL)
- Retryability indicators
- Structured JSON serialization for all errors

Tool-level errors (ToolNotFoundError, ToolExecutionError) never escape the
function calling loop: the invoker turns them into error results the model can
react to. Loop-level and remote-call-level errors propagate to the caller with
the correlation id and timing attached to ``details``.

Example:
    >>> try:
    ...     raise IterationBudgetExceededError(max_iterations=10)
    ... except StructuredError as e:
    ...     error_json = e.to_dict()
    ...     print(error_json["error_type"])
    ...     print(error_json["category"])
"""
from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"       # Schema/input validation errors
    TOOL = "tool"                   # Tool lookup/execution errors
    MODEL = "model"                 # Language model errors (transport, malformed output)
    ITERATION_BUDGET = "iteration_budget"  # Function calling loop ran out of iterations
    EXECUTION = "execution"         # Unexpected agent execution errors
    TIMEOUT = "timeout"             # Timeout/deadline errors
    REMOTE = "remote"               # Remote agent call errors
    WORKFLOW = "workflow"           # Workflow stage failures
    CONFIGURATION = "configuration"  # Configuration/setup errors
    UNKNOWN = "unknown"             # Unclassified errors


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"          # Informational
    WARNING = "warning"    # Warning (e.g., retryable timeout)
    ERROR = "error"        # Error (e.g., validation failed)
    CRITICAL = "critical"  # Critical (e.g., misconfiguration)


class StructuredError(Exception):
    """Base class for all structured errors.

    Provides consistent structure for error handling and serialization.
    All errors include category, severity, retryability, and context.

    Attributes:
        message: Human-readable error message
        category: ErrorCategory classification
        severity: ErrorSeverity level
        retryable: Whether the operation can be retried
        details: Additional context (dict)
        timestamp: When the error occurred

    Example:
        >>> error = StructuredError(
        ...     "Something went wrong",
        ...     category=ErrorCategory.EXECUTION,
        ...     severity=ErrorSeverity.ERROR,
        ...     retryable=True,
        ...     details={"agent": "research-agent"}
        ... )
        >>> error_dict = error.to_dict()
        >>> assert error_dict["error_type"] == "StructuredError"
        >>> assert error_dict["retryable"] is True
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize structured error.

        Args:
            message: Human-readable error message
            category: Error category (default: UNKNOWN)
            severity: Error severity (default: ERROR)
            retryable: Whether operation can be retried (default: False)
            details: Additional context dictionary (default: None)
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.retryable = retryable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def add_context(self, **context: Any) -> "StructuredError":
        """Attach diagnostic context (correlation id, timings) to ``details``.

        Existing keys are kept, so the innermost layer wins when the same
        error crosses several boundaries.
        """
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary.

        Returns:
            Dictionary with error details in predictable schema:
            {
                "error_type": "ErrorClassName",
                "message": "Human-readable message",
                "category": "validation|tool|model|remote|...",
                "severity": "info|warning|error|critical",
                "retryable": true|false,
                "details": {...},
                "timestamp": "2024-01-01T12:00:00.000000+00:00"
            }
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class ValidationError(StructuredError):
    """Error during input validation.

    Raised when a request doesn't match its schema or violates a constraint.
    Never retried: the caller has to change the input.

    Example:
        >>> raise ValidationError(
        ...     "Invalid request format",
        ...     details={"errors": [{"loc": ["query"], "msg": "field required"}]}
        ... )
    """

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            retryable=retryable,
            details=details
        )


class ToolNotFoundError(StructuredError):
    """Raised when the model asks for a tool the registry does not know.

    The invoker converts it into an ``is_error`` result; the loop continues.
    """

    def __init__(self, tool_name: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("tool", tool_name)
        super().__init__(
            message=f"Tool not found: {tool_name}",
            category=ErrorCategory.TOOL,
            severity=ErrorSeverity.WARNING,
            retryable=False,
            details=details
        )
        self.tool_name = tool_name


class ToolExecutionError(StructuredError):
    """Raised when a local executor or remote tool server fails.

    Like ToolNotFoundError, this is absorbed into the conversation.
    """

    def __init__(
        self,
        tool_name: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details.setdefault("tool", tool_name)
        super().__init__(
            message=message,
            category=ErrorCategory.TOOL,
            severity=ErrorSeverity.WARNING,
            retryable=False,
            details=details
        )
        self.tool_name = tool_name


class ToolServerError(StructuredError):
    """Remote tool server unreachable or answering with a protocol error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.TOOL,
            severity=ErrorSeverity.ERROR,
            retryable=True,
            details=details
        )


class ModelError(StructuredError):
    """Error talking to the language model provider.

    Rate limiting and 5xx responses are retryable, auth and bad requests are not.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.MODEL,
            severity=ErrorSeverity.ERROR,
            retryable=retryable,
            details=details
        )


class ModelMalformedResponseError(ModelError):
    """Raised when the model returns neither tool calls nor a text answer,
    or returns tool calls that cannot be decoded.

    Fatal for the function calling loop.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, retryable=False, details=details)


class IterationBudgetExceededError(StructuredError):
    """Raised when the function calling loop hits its iteration cap.

    Distinct from ModelMalformedResponseError: the model kept asking for tools
    and never produced an answer.
    """

    def __init__(self, max_iterations: int, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("max_iterations", max_iterations)
        super().__init__(
            message=f"Function calling exceeded maximum iterations ({max_iterations})",
            category=ErrorCategory.ITERATION_BUDGET,
            severity=ErrorSeverity.ERROR,
            retryable=False,
            details=details
        )
        self.max_iterations = max_iterations


class AgentExecutionError(StructuredError):
    """Unexpected failure inside an agent runtime, wrapped with its context."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            retryable=False,
            details=details
        )


class TimeoutError(StructuredError):
    """Error when operation exceeds timeout.

    Raised when an operation (model call, tool call, agent request)
    exceeds its configured timeout threshold.

    Example:
        >>> raise TimeoutError(
        ...     "Model request exceeded 30s timeout",
        ...     retryable=True,
        ...     details={"timeout_seconds": 30}
        ... )
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,  # Timeouts are often transient
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.WARNING,
            retryable=retryable,
            details=details
        )


class ModelTimeoutError(TimeoutError):
    """Raised when a model request exceeds its timeout."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        details = {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message=message, retryable=True, details=details)


class DeadlineExceededError(TimeoutError):
    """Raised when a caller-supplied deadline expires mid-run.

    Not retryable: the caller's time budget is spent.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, retryable=False, details=details)


class RemoteCallError(StructuredError):
    """Error calling a peer agent over HTTP.

    ``kind`` classifies the failure:
    - retryable: ``timeout``, ``connection``, ``rate_limit``, ``server_busy``
    - non-retryable: ``client_error``, ``server_error``, ``invalid_response``

    Timeouts are reported under the TIMEOUT category so callers can tell them
    apart from other remote failures.

    Example:
        >>> raise RemoteCallError(
        ...     "Agent returned status 503",
        ...     kind="server_busy",
        ...     status_code=503,
        ...     details={"agent": "analysis-agent"}
        ... )
    """

    RETRYABLE_KINDS = frozenset({"timeout", "connection", "rate_limit", "server_busy"})

    def __init__(
        self,
        message: str,
        kind: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details.setdefault("kind", kind)
        if status_code is not None:
            details.setdefault("status_code", status_code)
        is_timeout = kind == "timeout"
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT if is_timeout else ErrorCategory.REMOTE,
            severity=ErrorSeverity.WARNING if is_timeout else ErrorSeverity.ERROR,
            retryable=kind in self.RETRYABLE_KINDS,
            details=details
        )
        self.kind = kind
        self.status_code = status_code
        self.attempts: List[Dict[str, Any]] = []

    @property
    def is_timeout(self) -> bool:
        """True for timeout-class failures."""
        return self.kind == "timeout"


class StageFailureError(StructuredError):
    """Raised when a workflow stage fails after exhausting its own retries.

    Fatal to the whole workflow. Carries the results of the stages that had
    already completed, for diagnosis.

    Attributes:
        stage_name: Name of the failed stage
        collected_results: Raw results of the completed stages, in order
        stages: Per-stage summaries including the failed stage
    """

    def __init__(
        self,
        stage_name: str,
        message: str,
        collected_results: Optional[List[Any]] = None,
        stages: Optional[List[Any]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.stage_name = stage_name
        self.collected_results = list(collected_results or [])
        self.stages = list(stages or [])
        details = dict(details or {})
        details.setdefault("stage", stage_name)
        details.setdefault("collected_results", [_as_dict(r) for r in self.collected_results])
        details.setdefault("stages", [_as_dict(s) for s in self.stages])
        super().__init__(
            message=message,
            category=ErrorCategory.WORKFLOW,
            severity=ErrorSeverity.ERROR,
            retryable=False,
            details=details
        )


class ConfigurationError(StructuredError):
    """Error in system configuration.

    Raised when required configuration is missing, invalid,
    or incompatible. Usually requires admin intervention.

    Example:
        >>> raise ConfigurationError(
        ...     "No model provider configured",
        ...     details={"variables": ["OPENROUTER_API_KEY", "ANTHROPIC_API_KEY"]}
        ... )
    """

    def __init__(
        self,
        message: str,
        retryable: bool = False,  # Config errors need manual fix
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            retryable=retryable,
            details=details
        )


def _as_dict(value: Any) -> Any:
    dump = getattr(value, "model_dump", None)
    if dump is not None:
        return dump(mode="json", by_alias=True)
    return value
