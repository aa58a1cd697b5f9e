"""HTTP tests for the agent service."""
import pytest
from fastapi.testclient import TestClient

from a2a_agents.agent_server import create_agent_app, create_app_from_env
from a2a_agents.config import Settings
from a2a_agents.correlation import is_valid_correlation_id
from a2a_agents.llm.providers import MockProvider
from a2a_agents.runtime import AgentRuntime

CID = "0f8fad5b-d9cb-469f-a165-70867728950e"
PATH = "/api/v1/research/process"


@pytest.fixture
def provider():
    return MockProvider(script=[[{"name": "echo", "args": {"text": "hi"}}], "The answer"])


@pytest.fixture
def client(provider, echo_tool):
    runtime = AgentRuntime(
        name="research-agent",
        role_prompt="You are a research agent.",
        provider=provider,
        local_tools=[echo_tool],
        max_iterations=3,
    )
    with TestClient(create_agent_app(runtime, PATH)) as test_client:
        yield test_client


class TestProcessEndpoint:
    def test_success_camel_case_body(self, client):
        response = client.post(PATH, json={"query": "q", "correlationId": CID})

        assert response.status_code == 200
        body = response.json()
        assert body["correlationId"] == CID
        assert body["agentName"] == "research-agent"
        assert body["result"] == "The answer"
        assert body["toolsUsed"] == ["echo"]
        assert body["iterations"] == 2
        assert body["tokenUsage"]["totalTokens"] == 300
        assert response.headers["x-correlation-id"] == CID

    def test_header_correlation_id_used_when_body_has_none(self, client):
        response = client.post(PATH, json={"query": "q"}, headers={"x-correlation-id": CID})

        assert response.json()["correlationId"] == CID
        assert response.headers["x-correlation-id"] == CID

    def test_body_correlation_id_wins_over_header(self, client):
        other = "9b2d4c1e-3f5a-4b6c-8d7e-1f2a3b4c5d6e"

        response = client.post(PATH, json={"query": "q", "correlationId": CID}, headers={"x-correlation-id": other})

        assert response.json()["correlationId"] == CID
        assert response.headers["x-correlation-id"] == CID

    def test_correlation_id_generated(self, client):
        response = client.post(PATH, json={"query": "q"})

        cid = response.json()["correlationId"]
        assert is_valid_correlation_id(cid)
        assert response.headers["x-correlation-id"] == cid

    def test_previous_results_accepted(self, client, provider):
        client.post(PATH, json={
            "query": "q",
            "previousResults": [{"stageName": "research", "result": "earlier"}],
        })

        assert "--- research ---\nearlier" in provider.calls[0]["messages"][0].text

    def test_empty_query_is_400(self, client):
        response = client.post(PATH, json={"query": ""})

        assert response.status_code == 400
        body = response.json()
        assert body["error_type"] == "ValidationError"
        assert body["category"] == "validation"
        assert body["details"]["errors"][0]["loc"][-1] == "query"

    def test_iteration_budget_is_500_with_context(self, echo_tool):
        runtime = AgentRuntime(
            name="loopy",
            role_prompt="r",
            provider=MockProvider(script=[[{"name": "echo", "args": {}}]]),
            local_tools=[echo_tool],
            max_iterations=2,
        )
        with TestClient(create_agent_app(runtime, PATH)) as test_client:
            response = test_client.post(PATH, json={"query": "q"}, headers={"x-correlation-id": CID})

        assert response.status_code == 500
        body = response.json()
        assert body["error_type"] == "IterationBudgetExceededError"
        assert body["details"]["correlation_id"] == CID
        assert body["details"]["model_calls"] == 2

    def test_model_timeout_is_504(self):
        runtime = AgentRuntime(name="slow", role_prompt="r", provider=MockProvider(should_timeout=True))
        with TestClient(create_agent_app(runtime, PATH)) as test_client:
            response = test_client.post(PATH, json={"query": "q"})

        assert response.status_code == 504
        assert response.json()["category"] == "timeout"

    def test_request_timeout_header_applied(self, client, provider):
        client.post(PATH, json={"query": "q"}, headers={"x-request-timeout": "2.5"})

        assert provider.calls[0]["timeout"] <= 2.5


class TestOperationalEndpoints:
    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["agent"] == "research-agent"
        assert body["tools"] == ["echo"]

    def test_cost(self, client):
        client.post(PATH, json={"query": "q"})

        body = client.get("/cost").json()

        assert body["agent"] == "research-agent"
        assert body["metrics"]["total_requests"] == 2
        assert body["metrics"]["total_tokens"] == 300

    def test_metrics(self, client):
        client.post(PATH, json={"query": "q"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "agent_requests_total" in response.text


class TestAppFactory:
    def test_builds_profile_from_settings(self):
        app = create_app_from_env(Settings(agent_profile="writer"), provider=MockProvider(script=["report"]))

        with TestClient(app) as test_client:
            response = test_client.post("/api/v1/writer/process", json={"query": "write"})
            tools = test_client.get("/health").json()["tools"]

        assert response.json()["result"] == "report"
        assert tools == ["format_as_markdown_table", "count_words"]
