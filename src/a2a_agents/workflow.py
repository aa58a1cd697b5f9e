"""Sequential multi-agent workflows.

A workflow is a fixed, ordered list of stages, each backed by a remote agent.
Stage N sees the raw results of stages 1..N-1 and the result of the last
stage is the workflow's result.

Example:
    >>> coordinator = build_research_analysis_writer(settings)
    >>> result = coordinator.execute(WorkflowInput(query="Impact of AI on healthcare"))
    >>> [s.name for s in result.stages]
    ['research', 'analysis', 'writer']
"""
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .clients.remote import RemoteAgentClient
from .config import Settings
from .correlation import ensure_correlation_id
from .errors import ConfigurationError, RemoteCallError, StageFailureError, StructuredError
from .logging import bind_logger
from .retry import RetryPolicy
from .schemas import (
    AgentRequest,
    AgentResponse,
    PriorResult,
    StageSummary,
    TokenUsage,
    WorkflowInput,
    WorkflowResult,
)

logger = logging.getLogger("a2a_agents.workflow")

WRITER_QUERY_TEMPLATE = "Create a comprehensive report based on the research and analysis. {query}"


@dataclass(frozen=True)
class WorkflowStage:
    """One workflow step.

    Attributes:
        name: Stage name, unique within a workflow
        client: Client for the agent that runs the stage
        query_template: Optional ``str.format`` template with a ``{query}``
            placeholder; rewrites the query sent to this stage
    """
    name: str
    client: RemoteAgentClient
    query_template: Optional[str] = None

    def render_query(self, query: str) -> str:
        if self.query_template is None:
            return query
        return self.query_template.format(query=query)


class WorkflowCoordinator:
    def __init__(
        self,
        stages: Sequence[WorkflowStage],
        name: str = "research-analysis-writer",
        timeout: Optional[float] = None,
        log: Optional[logging.Logger] = None
    ) -> None:
        """Initialize the coordinator.

        Args:
            stages: Ordered stages
            name: Workflow name reported in results
            timeout: Default overall time budget in seconds, or None
            log: Base logger

        Raises:
            ConfigurationError: If ``stages`` is empty or names repeat
        """
        if not stages:
            raise ConfigurationError("Workflow requires at least one stage", details={"workflow": name})
        names = [s.name for s in stages]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate workflow stage names: {', '.join(duplicates)}",
                details={"workflow": name, "duplicates": duplicates}
            )
        self.name = name
        self._stages = list(stages)
        self._timeout = timeout
        self._log = log or logger

    @property
    def stages(self) -> List[WorkflowStage]:
        return list(self._stages)

    def execute(self, workflow_input: WorkflowInput, timeout: Optional[float] = None) -> WorkflowResult:
        """Run every stage in order.

        Args:
            workflow_input: Query, context and optional correlation id
            timeout: Overall time budget in seconds (default: the
                coordinator's ``timeout``)

        Returns:
            WorkflowResult with the last stage's result, per-stage summaries,
            the ordered intermediate results and aggregated token usage

        Raises:
            StageFailureError: A stage failed after its retries. Carries the
                results of the stages that completed before it.
        """
        correlation_id = ensure_correlation_id(workflow_input.correlation_id)
        log = bind_logger(self._log, correlation_id=correlation_id, workflow=self.name)
        timeout = self._timeout if timeout is None else timeout
        deadline = None if timeout is None else time.monotonic() + timeout

        start = time.perf_counter()
        prior: List[PriorResult] = []
        summaries: List[StageSummary] = []
        usages: List[TokenUsage] = []

        log.info("Starting workflow with %d stage(s)", len(self._stages))
        for stage in self._stages:
            request = AgentRequest(
                correlation_id=correlation_id,
                query=stage.render_query(workflow_input.query),
                context=workflow_input.context,
                previous_results=list(prior),
            )
            stage_start = time.perf_counter()
            log.info("Running stage %s", stage.name)
            try:
                response = stage.client.call(request, deadline=deadline)
            except StructuredError as e:
                raise self._stage_failure(stage, e, stage_start, prior, summaries, correlation_id, log) from e

            summaries.append(_summarize(stage.name, response))
            usages.append(response.token_usage)
            prior.append(PriorResult(stage_name=stage.name, result=response.result))
            log.info(
                "Stage %s completed",
                stage.name,
                extra={"execution_time_ms": round(response.execution_time_ms, 2)}
            )

        total_usage = TokenUsage.aggregate(usages)
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info(
            "Workflow completed",
            extra={"total_tokens": total_usage.total_tokens, "execution_time_ms": round(elapsed_ms, 2)}
        )
        return WorkflowResult(
            correlation_id=correlation_id,
            workflow_name=self.name,
            result=prior[-1].result,
            stages=summaries,
            intermediate_results=prior,
            total_token_usage=total_usage,
            total_cost=total_usage.estimated_cost,
            total_execution_time_ms=elapsed_ms,
        )

    def health(self) -> Dict[str, bool]:
        """Probe every stage's agent."""
        return {stage.name: stage.client.health_check() for stage in self._stages}

    def _stage_failure(
        self,
        stage: WorkflowStage,
        error: StructuredError,
        stage_start: float,
        prior: List[PriorResult],
        summaries: List[StageSummary],
        correlation_id: str,
        log: logging.LoggerAdapter
    ) -> StageFailureError:
        failed = StageSummary(
            name=stage.name,
            execution_time_ms=(time.perf_counter() - stage_start) * 1000,
            success=False,
        )
        log.error("Stage %s failed: %s", stage.name, error.message)
        details = {
            "correlation_id": correlation_id,
            "workflow": self.name,
            "cause": error.to_dict(),
        }
        if isinstance(error, RemoteCallError):
            details["attempts"] = error.attempts
        return StageFailureError(
            stage.name,
            f"Workflow stage {stage.name} failed: {error.message}",
            collected_results=list(prior),
            stages=summaries + [failed],
            details=details
        )


def _summarize(name: str, response: AgentResponse) -> StageSummary:
    return StageSummary(
        name=name,
        execution_time_ms=response.execution_time_ms,
        token_usage=response.token_usage,
        success=True,
        tools_used=response.tools_used,
        iterations=response.iterations,
    )


def build_research_analysis_writer(
    settings: Settings,
    session=None,
    log: Optional[logging.Logger] = None
) -> WorkflowCoordinator:
    """Wire the standard research -> analysis -> writer workflow from settings."""
    policy = RetryPolicy(
        retries=settings.retry_attempts,
        min_delay=settings.retry_min_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
        factor=settings.retry_factor,
    )

    def client(name: str, base_url: str) -> RemoteAgentClient:
        return RemoteAgentClient(
            f"{name}-agent",
            base_url,
            f"/api/v1/{name}/process",
            timeout=settings.agent_timeout_seconds,
            health_timeout=settings.health_timeout_seconds,
            retry_policy=policy,
            session=session,
            log=log,
        )

    stages = [
        WorkflowStage("research", client("research", settings.research_agent_url)),
        WorkflowStage("analysis", client("analysis", settings.analysis_agent_url)),
        WorkflowStage(
            "writer",
            client("writer", settings.writer_agent_url),
            query_template=WRITER_QUERY_TEMPLATE
        ),
    ]
    return WorkflowCoordinator(stages, timeout=settings.workflow_timeout_seconds, log=log)
