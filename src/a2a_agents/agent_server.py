"""HTTP service for a single agent.

Run one agent per process, selected by ``AGENT_PROFILE``:

    AGENT_PROFILE=analysis OPENROUTER_API_KEY=... python -m a2a_agents.agent_server
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from prometheus_client import Counter, Histogram

from .api import configure_app, error_status
from .config import Settings, settings as default_settings
from .correlation import is_valid_correlation_id
from .errors import StructuredError
from .llm.base import LLMProvider
from .llm.providers import create_provider
from .logging import logger, setup_logging
from .profiles import build_runtime, get_profile
from .runtime import AgentRuntime
from .schemas import AgentRequest, AgentResponse

REQUEST_TIMEOUT_HEADER = "x-request-timeout"

REQS = Counter("agent_requests_total", "Total agent requests", ["agent", "status"])
LAT = Histogram("agent_request_duration_ms", "Agent request duration in ms", ["agent"])
TOKENS_IN = Counter("agent_tokens_input_total", "Total input tokens consumed", ["agent"])
TOKENS_OUT = Counter("agent_tokens_output_total", "Total output tokens generated", ["agent"])
COST = Counter("agent_cost_usd_total", "Total estimated cost in USD", ["agent"])


def _request_timeout(request: Request) -> Optional[float]:
    raw = request.headers.get(REQUEST_TIMEOUT_HEADER)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s header: %r", REQUEST_TIMEOUT_HEADER, raw)
        return None
    return value if value > 0 else None


def create_agent_app(runtime: AgentRuntime, process_path: str) -> FastAPI:
    """Expose ``runtime`` over HTTP.

    Endpoints:
        POST <process_path>  AgentRequest -> AgentResponse
        GET /health          liveness and tool catalog
        GET /cost            accumulated token usage and cost
        GET /metrics         Prometheus metrics
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime.initialize()
        yield
        runtime.shutdown()

    app = configure_app(FastAPI(title=runtime.name, version="0.1.0", lifespan=lifespan))
    app.state.runtime = runtime

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "agent": runtime.name,
            "initialized": runtime.is_initialized,
            "tools": [t.name for t in runtime.catalog],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/cost")
    def cost():
        return {
            "agent": runtime.name,
            "model": runtime.accountant.model,
            "metrics": runtime.get_metrics().to_dict(),
        }

    @app.post(process_path, response_model=AgentResponse, response_model_exclude_none=True)
    def process(req: AgentRequest, request: Request):
        # The middleware already validated or generated the header id.
        if not is_valid_correlation_id(req.correlation_id):
            req = req.model_copy(update={"correlation_id": request.state.correlation_id})
        request.state.correlation_id = req.correlation_id

        try:
            response = runtime.process(req, timeout=_request_timeout(request))
        except StructuredError as e:
            REQS.labels(agent=runtime.name, status=str(error_status(e))).inc()
            raise

        REQS.labels(agent=runtime.name, status="200").inc()
        LAT.labels(agent=runtime.name).observe(response.execution_time_ms)
        usage = response.token_usage
        if usage.input_tokens > 0:
            TOKENS_IN.labels(agent=runtime.name).inc(usage.input_tokens)
        if usage.output_tokens > 0:
            TOKENS_OUT.labels(agent=runtime.name).inc(usage.output_tokens)
        if usage.estimated_cost > 0:
            COST.labels(agent=runtime.name).inc(usage.estimated_cost)
        return response

    return app


def create_app_from_env(
    settings: Optional[Settings] = None,
    provider: Optional[LLMProvider] = None
) -> FastAPI:
    """Build the agent service named by ``settings.agent_profile``.

    Raises:
        ConfigurationError: Unknown profile or no model provider credentials
    """
    settings = settings or default_settings
    setup_logging(settings.log_level)
    profile = get_profile(settings.agent_profile)
    provider = provider or create_provider(settings.model_name)
    runtime = build_runtime(profile, settings, provider)
    logger.info("Starting %s with model %s", profile.name, provider.model_name)
    return create_agent_app(runtime, profile.process_path)


if __name__ == "__main__":
    import uvicorn
    profile = get_profile(default_settings.agent_profile)
    uvicorn.run(
        "a2a_agents.agent_server:create_app_from_env",
        factory=True,
        host=default_settings.host,
        port=default_settings.port or profile.default_port,
    )
