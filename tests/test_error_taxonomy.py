"""Tests for the structured error taxonomy.

Validates that:
1. All errors inherit from StructuredError
2. All errors have a predictable to_dict() schema
3. Categories, severities and retryability are correct
4. Context added at outer layers does not overwrite inner details
5. Errors map to the right HTTP status
"""
import json
from datetime import datetime

import pytest

from a2a_agents.api import error_status
from a2a_agents.errors import (
    AgentExecutionError,
    ConfigurationError,
    DeadlineExceededError,
    ErrorCategory,
    ErrorSeverity,
    IterationBudgetExceededError,
    ModelError,
    ModelMalformedResponseError,
    ModelTimeoutError,
    RemoteCallError,
    StageFailureError,
    StructuredError,
    TimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolServerError,
    ValidationError,
)
from a2a_agents.schemas import PriorResult, StageSummary


def all_errors():
    return [
        ValidationError("test"),
        ToolNotFoundError("web_search"),
        ToolExecutionError("web_search", "test"),
        ToolServerError("test"),
        ModelError("test"),
        ModelMalformedResponseError("test"),
        ModelTimeoutError("test", timeout_seconds=30),
        IterationBudgetExceededError(10),
        AgentExecutionError("test"),
        TimeoutError("test"),
        DeadlineExceededError("test"),
        RemoteCallError("test", kind="connection"),
        StageFailureError("analysis", "test"),
        ConfigurationError("test"),
    ]


class TestStructuredErrorBase:
    """Test base StructuredError functionality."""

    def test_structured_error_creation(self):
        """Test creating a basic structured error."""
        error = StructuredError(
            "Test error message",
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            retryable=True,
            details={"key": "value"}
        )

        assert str(error) == "Test error message"
        assert error.message == "Test error message"
        assert error.category == ErrorCategory.EXECUTION
        assert error.retryable is True
        assert error.details == {"key": "value"}
        assert isinstance(error.timestamp, datetime)

    def test_structured_error_defaults(self):
        """Test that defaults are set correctly."""
        error = StructuredError("Simple error")

        assert error.category == ErrorCategory.UNKNOWN
        assert error.severity == ErrorSeverity.ERROR
        assert error.retryable is False
        assert error.details == {}

    def test_add_context_keeps_inner_values(self):
        """The innermost layer wins when the same key is added twice."""
        error = StructuredError("x", details={"agent": "inner"})

        error.add_context(agent="outer", correlation_id="abc")

        assert error.details == {"agent": "inner", "correlation_id": "abc"}

    def test_timestamp_is_iso(self):
        assert "T" in StructuredError("Test").to_dict()["timestamp"]


class TestLoopErrors:
    """Errors raised by the function calling loop."""

    def test_iteration_budget_message(self):
        error = IterationBudgetExceededError(10)

        assert error.message == "Function calling exceeded maximum iterations (10)"
        assert error.category == ErrorCategory.ITERATION_BUDGET
        assert error.details["max_iterations"] == 10
        assert error.retryable is False

    def test_malformed_is_distinct_from_budget(self):
        malformed = ModelMalformedResponseError("neither calls nor text")

        assert malformed.category == ErrorCategory.MODEL
        assert not isinstance(malformed, IterationBudgetExceededError)

    def test_deadline_is_timeout_but_not_retryable(self):
        error = DeadlineExceededError("deadline")

        assert isinstance(error, TimeoutError)
        assert error.category == ErrorCategory.TIMEOUT
        assert error.retryable is False

    def test_model_timeout_is_retryable(self):
        error = ModelTimeoutError("slow", timeout_seconds=30)

        assert error.retryable is True
        assert error.details == {"timeout_seconds": 30}

    def test_tool_not_found_message(self):
        error = ToolNotFoundError("nonexistent")

        assert error.message == "Tool not found: nonexistent"
        assert error.category == ErrorCategory.TOOL


class TestRemoteCallError:
    """Failure kinds of remote agent calls."""

    @pytest.mark.parametrize("kind", ["timeout", "connection", "rate_limit", "server_busy"])
    def test_retryable_kinds(self, kind):
        assert RemoteCallError("x", kind=kind).retryable is True

    @pytest.mark.parametrize("kind", ["client_error", "server_error", "invalid_response"])
    def test_non_retryable_kinds(self, kind):
        assert RemoteCallError("x", kind=kind).retryable is False

    def test_timeout_kind_uses_timeout_category(self):
        error = RemoteCallError("x", kind="timeout")

        assert error.is_timeout
        assert error.category == ErrorCategory.TIMEOUT

    def test_other_kinds_use_remote_category(self):
        error = RemoteCallError("x", kind="server_busy", status_code=503)

        assert error.category == ErrorCategory.REMOTE
        assert error.details == {"kind": "server_busy", "status_code": 503}


class TestStageFailureError:
    def test_carries_partial_results(self):
        error = StageFailureError(
            "analysis",
            "Workflow stage analysis failed",
            collected_results=[PriorResult(stage_name="research", result="found")],
            stages=[StageSummary(name="research", execution_time_ms=1.0, success=True)],
        )

        assert error.category == ErrorCategory.WORKFLOW
        assert error.details["stage"] == "analysis"
        assert error.details["collected_results"] == [{"stageName": "research", "result": "found"}]
        assert error.details["stages"][0]["name"] == "research"
        # Details serialize cleanly
        json.dumps(error.to_dict())


class TestHttpStatus:
    @pytest.mark.parametrize("error,status", [
        (ValidationError("bad"), 400),
        (StageFailureError("analysis", "failed"), 502),
        (RemoteCallError("x", kind="timeout"), 504),
        (DeadlineExceededError("x"), 504),
        (ModelTimeoutError("x"), 504),
        (RemoteCallError("x", kind="server_busy"), 503),
        (ModelError("x", retryable=True), 503),
        (ModelError("x"), 500),
        (IterationBudgetExceededError(3), 500),
        (AgentExecutionError("x"), 500),
    ])
    def test_status(self, error, status):
        assert error_status(error) == status


class TestErrorSchemaConsistency:
    """All errors return a predictable schema."""

    def test_all_errors_are_structured(self):
        for error in all_errors():
            assert isinstance(error, StructuredError)

    def test_all_errors_have_same_keys(self):
        expected_keys = {"error_type", "message", "category", "severity", "retryable", "details", "timestamp"}

        for error in all_errors():
            assert set(error.to_dict().keys()) == expected_keys, \
                f"{error.__class__.__name__} missing keys"

    def test_all_errors_have_valid_enums(self):
        valid_categories = {e.value for e in ErrorCategory}
        valid_severities = {e.value for e in ErrorSeverity}

        for error in all_errors():
            error_dict = error.to_dict()
            assert error_dict["category"] in valid_categories, \
                f"{error.__class__.__name__} has invalid category"
            assert error_dict["severity"] in valid_severities, \
                f"{error.__class__.__name__} has invalid severity"
            assert isinstance(error_dict["retryable"], bool)
