"""LLM abstraction layer for tool-calling conversations."""
from .base import LLMProvider, ModelTurn, ModelUsage

__all__ = ["LLMProvider", "ModelTurn", "ModelUsage"]
