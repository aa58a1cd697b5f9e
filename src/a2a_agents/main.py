from fastapi import FastAPI, Request
from prometheus_client import Counter, Histogram

from .api import configure_app
from .config import settings
from .correlation import is_valid_correlation_id
from .errors import StageFailureError, StructuredError
from .logging import setup_logging
from .schemas import WorkflowInput, WorkflowResult
from .workflow import WorkflowCoordinator, build_research_analysis_writer

WORKFLOWS = Counter("workflow_runs_total", "Total workflow runs", ["workflow", "outcome"])
WORKFLOW_LAT = Histogram("workflow_duration_ms", "Workflow duration in ms", ["workflow"])
STAGE_FAILURES = Counter("workflow_stage_failures_total", "Workflow stage failures", ["workflow", "stage"])
WORKFLOW_TOKENS = Counter("workflow_tokens_total", "Total tokens consumed by workflows", ["workflow"])
WORKFLOW_COST = Counter("workflow_cost_usd_total", "Total estimated workflow cost in USD", ["workflow"])


def create_orchestrator_app(coordinator: WorkflowCoordinator) -> FastAPI:
    app = configure_app(FastAPI(title="A2A Orchestrator", version="0.1.0"))
    app.state.coordinator = coordinator

    @app.get("/health")
    def health():
        agents = coordinator.health()
        return {
            "status": "ok" if all(agents.values()) else "degraded",
            "agents": agents,
        }

    @app.post("/api/v1/workflow/execute", response_model=WorkflowResult, response_model_exclude_none=True)
    def execute(req: WorkflowInput, request: Request):
        if not is_valid_correlation_id(req.correlation_id):
            req = req.model_copy(update={"correlation_id": request.state.correlation_id})
        request.state.correlation_id = req.correlation_id

        try:
            result = coordinator.execute(req)
        except StageFailureError as e:
            WORKFLOWS.labels(workflow=coordinator.name, outcome="stage_failure").inc()
            STAGE_FAILURES.labels(workflow=coordinator.name, stage=e.stage_name).inc()
            raise
        except StructuredError:
            WORKFLOWS.labels(workflow=coordinator.name, outcome="error").inc()
            raise

        WORKFLOWS.labels(workflow=coordinator.name, outcome="success").inc()
        WORKFLOW_LAT.labels(workflow=coordinator.name).observe(result.total_execution_time_ms)
        if result.total_token_usage.total_tokens > 0:
            WORKFLOW_TOKENS.labels(workflow=coordinator.name).inc(result.total_token_usage.total_tokens)
        if result.total_cost > 0:
            WORKFLOW_COST.labels(workflow=coordinator.name).inc(result.total_cost)
        return result

    return app


setup_logging(settings.log_level)
app = create_orchestrator_app(build_research_analysis_writer(settings))

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("a2a_agents.main:app", host=settings.host, port=settings.port or 3000)
