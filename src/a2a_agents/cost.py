"""Token usage and cost accounting.

One CostAccountant belongs to one AgentRuntime and records every model call
that runtime makes. Prices are per million tokens.

Example:
    >>> accountant = CostAccountant(model="gemini-1.5-flash")
    >>> usage = accountant.track(input_tokens=1200, output_tokens=300)
    >>> usage.total_tokens
    1500
    >>> accountant.get_metrics().total_requests
    1
"""
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict

from .schemas import TokenUsage

logger = logging.getLogger("a2a_agents.cost")


@dataclass(frozen=True)
class ModelPricing:
    """USD per million tokens."""
    input_per_mtok: float
    output_per_mtok: float


PRICING: Dict[str, ModelPricing] = {
    "gemini-1.5-pro": ModelPricing(input_per_mtok=1.25, output_per_mtok=5.00),
    "gemini-1.5-flash": ModelPricing(input_per_mtok=0.075, output_per_mtok=0.30),
    "claude-3-5-sonnet": ModelPricing(input_per_mtok=3.00, output_per_mtok=15.00),
    "claude-3-5-haiku": ModelPricing(input_per_mtok=0.80, output_per_mtok=4.00),
}

DEFAULT_TIER = "gemini-1.5-pro"


def resolve_pricing(model: str) -> ModelPricing:
    """Find the price tier for a model name.

    Exact match first, then a tier name contained in the model name
    (``anthropic/claude-3-5-sonnet-20241022``), then the ``flash`` family,
    then the default tier. Never fails.
    """
    if model in PRICING:
        return PRICING[model]
    lowered = model.lower()
    for tier, pricing in PRICING.items():
        if tier in lowered:
            return pricing
    if "flash" in lowered:
        return PRICING["gemini-1.5-flash"]
    logger.debug("No pricing tier for model %s; using %s", model, DEFAULT_TIER)
    return PRICING[DEFAULT_TIER]


def _price(pricing: ModelPricing, input_tokens: int, output_tokens: int) -> float:
    return (
        (input_tokens / 1_000_000) * pricing.input_per_mtok +
        (output_tokens / 1_000_000) * pricing.output_per_mtok
    )


def calculate_cost(input_tokens: int, output_tokens: int, model: str = DEFAULT_TIER) -> float:
    return _price(resolve_pricing(model), input_tokens, output_tokens)


@dataclass(frozen=True)
class CostMetrics:
    """Aggregate usage across all tracked model calls."""
    total_requests: int
    total_input_tokens: int
    total_output_tokens: int
    total_tokens: int
    total_cost: float

    @property
    def average_tokens_per_request(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_tokens / self.total_requests

    @property
    def average_cost_per_request(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_cost / self.total_requests

    def to_dict(self) -> dict:
        """Convert metrics to dictionary for logging/monitoring."""
        return {
            "total_requests": self.total_requests,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_tokens,
            "total_cost": self.total_cost,
            "average_tokens_per_request": self.average_tokens_per_request,
            "average_cost_per_request": self.average_cost_per_request,
        }


class CostAccountant:
    """Running token/cost aggregate for one agent runtime.

    Thread-safe: a runtime may serve concurrent requests.
    """

    def __init__(self, model: str = DEFAULT_TIER) -> None:
        self._model = model
        self._pricing = resolve_pricing(model)
        self._lock = Lock()
        self._requests = 0
        self._input_tokens = 0
        self._output_tokens = 0
        self._cost = 0.0

    @property
    def model(self) -> str:
        return self._model

    def track(self, input_tokens: int, output_tokens: int) -> TokenUsage:
        """Record one model call and return its priced usage."""
        cost = _price(self._pricing, input_tokens, output_tokens)
        usage = TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            estimated_cost=cost,
        )
        with self._lock:
            self._requests += 1
            self._input_tokens += input_tokens
            self._output_tokens += output_tokens
            self._cost += cost
        return usage

    def get_metrics(self) -> CostMetrics:
        with self._lock:
            return CostMetrics(
                total_requests=self._requests,
                total_input_tokens=self._input_tokens,
                total_output_tokens=self._output_tokens,
                total_tokens=self._input_tokens + self._output_tokens,
                total_cost=self._cost,
            )

    def reset(self) -> None:
        """Reset all tracked metrics."""
        with self._lock:
            self._requests = 0
            self._input_tokens = 0
            self._output_tokens = 0
            self._cost = 0.0
