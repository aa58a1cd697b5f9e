"""Tests for the remote agent client."""
import time

import pytest
import requests

from a2a_agents.clients.remote import RemoteAgentClient, classify_status
from a2a_agents.errors import ErrorCategory, RemoteCallError
from a2a_agents.retry import RetryPolicy
from a2a_agents.schemas import AgentRequest

from conftest import FakeResponse, FakeSession, agent_response_json

CID = "0f8fad5b-d9cb-469f-a165-70867728950e"


class RecordingObserver:
    def __init__(self):
        self.attempts = []

    def on_attempt_failed(self, attempt):
        self.attempts.append(attempt)


def make_client(session, no_sleep, retries=3, **kwargs) -> RemoteAgentClient:
    return RemoteAgentClient(
        "analysis-agent",
        "http://analysis:3002/",
        "/api/v1/analysis/process",
        retry_policy=RetryPolicy(retries=retries),
        session=session,
        sleep=no_sleep.append,
        **kwargs
    )


class TestClassifyStatus:
    @pytest.mark.parametrize("status,kind", [
        (400, "client_error"),
        (404, "client_error"),
        (408, "timeout"),
        (429, "rate_limit"),
        (500, "server_error"),
        (502, "server_busy"),
        (503, "server_busy"),
        (504, "timeout"),
    ])
    def test_kinds(self, status, kind):
        assert classify_status(status) == kind


class TestCall:
    """Request shape and success path."""

    def test_success(self, no_sleep):
        session = FakeSession(post=[FakeResponse(200, agent_response_json("analysis", CID))])
        client = make_client(session, no_sleep)

        response = client.call(AgentRequest(query="q", correlation_id=CID, context={"k": "v"}))

        assert response.result == "analysis"
        assert response.token_usage.total_tokens == 150
        call = session.calls[0]
        assert call["url"] == "http://analysis:3002/api/v1/analysis/process"
        assert call["json"] == {"correlationId": CID, "query": "q", "context": {"k": "v"}, "previousResults": []}
        assert call["headers"]["x-correlation-id"] == CID

    def test_correlation_id_generated_when_missing(self, no_sleep):
        session = FakeSession(post=[FakeResponse(200, agent_response_json())])

        make_client(session, no_sleep).call(AgentRequest(query="q"))

        sent = session.calls[0]
        assert sent["json"]["correlationId"] == sent["headers"]["x-correlation-id"]

    def test_request_timeout_header_capped_by_deadline(self, no_sleep):
        session = FakeSession(post=[FakeResponse(200, agent_response_json())])

        make_client(session, no_sleep, timeout=30.0).call(
            AgentRequest(query="q"), deadline=time.monotonic() + 5
        )

        assert session.calls[0]["timeout"] <= 5
        assert float(session.calls[0]["headers"]["x-request-timeout"]) <= 5


class TestRetries:
    """Failure classification and retry counts."""

    def test_always_timing_out_makes_retries_plus_one_attempts(self, no_sleep):
        session = FakeSession(post=[requests.exceptions.Timeout("read timed out")])
        observer = RecordingObserver()

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep, retries=3).call(AgentRequest(query="q"), observer=observer)

        assert len(session.calls) == 4
        assert exc_info.value.is_timeout
        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert len(observer.attempts) == 4
        assert exc_info.value.details["agent"] == "analysis-agent"

    def test_validation_error_not_retried(self, no_sleep):
        session = FakeSession(post=[FakeResponse(400, {"error_type": "ValidationError"}, text="bad")])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert len(session.calls) == 1
        assert exc_info.value.kind == "client_error"
        assert exc_info.value.status_code == 400
        assert no_sleep == []

    def test_recovers_from_transient_failures(self, no_sleep):
        session = FakeSession(post=[
            FakeResponse(503, text="busy"),
            requests.exceptions.ConnectionError("reset"),
            FakeResponse(200, agent_response_json("third time")),
        ])

        response = make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert response.result == "third time"
        assert no_sleep == [1.0, 2.0]

    def test_rate_limit_retried(self, no_sleep):
        session = FakeSession(post=[FakeResponse(429, text="slow down"), FakeResponse(200, agent_response_json())])

        make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert len(session.calls) == 2

    def test_internal_server_error_not_retried(self, no_sleep):
        session = FakeSession(post=[FakeResponse(500, text="boom")])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert len(session.calls) == 1
        assert exc_info.value.kind == "server_error"

    def test_structured_error_body_kept(self, no_sleep):
        body = {
            "error_type": "IterationBudgetExceededError",
            "message": "Function calling exceeded maximum iterations (10)",
            "category": "iteration_budget",
            "retryable": False,
            "details": {"execution_time_ms": 950.0, "model_calls": 10, "termination": "exhausted"},
        }
        session = FakeSession(post=[FakeResponse(500, body, text="...")])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        remote_error = exc_info.value.details["remote_error"]
        assert remote_error["error_type"] == "IterationBudgetExceededError"
        assert remote_error["details"]["execution_time_ms"] == 950.0
        assert exc_info.value.details["status_code"] == 500

    def test_plain_text_error_has_no_remote_error(self, no_sleep):
        session = FakeSession(post=[FakeResponse(500, text="boom")])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert "remote_error" not in exc_info.value.details
        assert "boom" in exc_info.value.message

    def test_invalid_body_not_retried(self, no_sleep):
        session = FakeSession(post=[FakeResponse(200, text="<html>")])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert len(session.calls) == 1
        assert exc_info.value.kind == "invalid_response"

    def test_body_missing_fields_is_invalid_response(self, no_sleep):
        session = FakeSession(post=[FakeResponse(200, {"unexpected": True})])

        with pytest.raises(RemoteCallError) as exc_info:
            make_client(session, no_sleep).call(AgentRequest(query="q"))

        assert exc_info.value.kind == "invalid_response"


class TestHealthCheck:
    def test_healthy(self, no_sleep):
        session = FakeSession(get=[FakeResponse(200, {"status": "ok"})])

        assert make_client(session, no_sleep).health_check() is True
        assert session.calls[0]["url"] == "http://analysis:3002/health"

    def test_unhealthy_status(self, no_sleep):
        session = FakeSession(get=[FakeResponse(503)])

        assert make_client(session, no_sleep).health_check() is False

    def test_connection_error_returns_false(self, no_sleep):
        session = FakeSession(get=[requests.exceptions.ConnectionError("refused")])

        assert make_client(session, no_sleep).health_check() is False


class TestTransport:
    """Without an injected session every call uses module-level requests."""

    def test_module_level_post_and_get(self, monkeypatch, no_sleep):
        posted, fetched = [], []

        def fake_post(url, **kwargs):
            posted.append(url)
            return FakeResponse(200, agent_response_json())

        def fake_get(url, **kwargs):
            fetched.append(url)
            return FakeResponse(200, {"status": "ok"})

        monkeypatch.setattr(requests, "post", fake_post)
        monkeypatch.setattr(requests, "get", fake_get)
        client = RemoteAgentClient(
            "analysis-agent", "http://analysis:3002", "/api/v1/analysis/process", sleep=no_sleep.append
        )

        client.call(AgentRequest(query="q"))
        assert client.health_check() is True
        client.close()

        assert posted == ["http://analysis:3002/api/v1/analysis/process"]
        assert fetched == ["http://analysis:3002/health"]

    def test_close_closes_injected_session(self, no_sleep):
        session = FakeSession()

        make_client(session, no_sleep).close()

        assert session.closed is True
