"""LLM provider implementations."""
import os

from .mock import MockProvider
from .anthropic import AnthropicProvider
from .openrouter import OpenRouterProvider
from ..base import LLMProvider
from ...errors import ConfigurationError


def create_provider(model_name: str | None = None) -> LLMProvider:
    """Pick a provider from the environment.

    1. OpenRouterProvider (if OPENROUTER_API_KEY is set)
    2. AnthropicProvider (if ANTHROPIC_API_KEY is set)

    Raises:
        ConfigurationError: If no provider key is set
    """
    if os.getenv("OPENROUTER_API_KEY"):
        return OpenRouterProvider(model=model_name)
    if os.getenv("ANTHROPIC_API_KEY"):
        return AnthropicProvider(model=model_name)
    raise ConfigurationError(
        "No model provider configured",
        details={"variables": ["OPENROUTER_API_KEY", "ANTHROPIC_API_KEY"]}
    )


__all__ = ["MockProvider", "AnthropicProvider", "OpenRouterProvider", "create_provider"]
