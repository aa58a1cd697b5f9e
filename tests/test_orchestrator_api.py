"""HTTP tests for the orchestrator service."""
from fastapi.testclient import TestClient

from a2a_agents.errors import RemoteCallError
from a2a_agents.main import app, create_orchestrator_app
from a2a_agents.workflow import WorkflowCoordinator, WorkflowStage

from test_workflow import StubClient

CID = "0f8fad5b-d9cb-469f-a165-70867728950e"
EXECUTE = "/api/v1/workflow/execute"


def make_client(**clients) -> TestClient:
    stages = [
        WorkflowStage(name, clients.get(name) or StubClient(name))
        for name in ("research", "analysis", "writer")
    ]
    return TestClient(create_orchestrator_app(WorkflowCoordinator(stages)))


class TestExecuteEndpoint:
    def test_success(self):
        response = make_client().post(EXECUTE, json={"query": "AI in healthcare", "correlationId": CID})

        assert response.status_code == 200
        body = response.json()
        assert body["correlationId"] == CID
        assert body["workflowName"] == "research-analysis-writer"
        assert body["result"] == "writer result"
        assert [s["name"] for s in body["stages"]] == ["research", "analysis", "writer"]
        assert body["totalTokenUsage"]["totalTokens"] == 450
        assert len(body["intermediateResults"]) == 3
        assert response.headers["x-correlation-id"] == CID

    def test_response_header_matches_generated_id(self):
        research = StubClient("research")

        response = make_client(research=research).post(EXECUTE, json={"query": "q"})

        cid = response.json()["correlationId"]
        assert response.headers["x-correlation-id"] == cid
        assert research.requests[0].correlation_id == cid

    def test_stage_failure_header_matches_body_id(self):
        failing = StubClient("research", error=RemoteCallError("busy", kind="server_busy"))

        response = make_client(research=failing).post(EXECUTE, json={"query": "q", "correlationId": CID})

        assert response.status_code == 502
        assert response.json()["details"]["correlation_id"] == CID
        assert response.headers["x-correlation-id"] == CID

    def test_header_correlation_id_threaded(self):
        research = StubClient("research")

        response = make_client(research=research).post(
            EXECUTE, json={"query": "q"}, headers={"x-correlation-id": CID}
        )

        assert response.json()["correlationId"] == CID
        assert research.requests[0].correlation_id == CID

    def test_stage_failure_is_502(self):
        failing = StubClient("analysis", error=RemoteCallError("busy", kind="server_busy"))

        response = make_client(analysis=failing).post(EXECUTE, json={"query": "q"})

        assert response.status_code == 502
        body = response.json()
        assert body["error_type"] == "StageFailureError"
        assert body["details"]["stage"] == "analysis"
        assert len(body["details"]["collected_results"]) == 1

    def test_missing_query_is_400(self):
        response = make_client().post(EXECUTE, json={})

        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_unknown_workflow_is_400(self):
        response = make_client().post(EXECUTE, json={"query": "q", "workflow": "other"})

        assert response.status_code == 400


class TestHealthEndpoint:
    def test_all_healthy(self):
        body = make_client().get("/health").json()

        assert body == {"status": "ok", "agents": {"research": True, "analysis": True, "writer": True}}

    def test_degraded(self):
        body = make_client(writer=StubClient("writer", healthy=False)).get("/health").json()

        assert body["status"] == "degraded"
        assert body["agents"]["writer"] is False


class TestDefaultApp:
    def test_metrics_endpoint(self):
        response = TestClient(app).get("/metrics")

        assert response.status_code == 200

    def test_standard_stages(self):
        coordinator = app.state.coordinator

        assert [s.name for s in coordinator.stages] == ["research", "analysis", "writer"]
