"""Base classes for LLM provider abstraction.

This module defines the interface the function calling loop consumes from a
language model. All providers must implement the LLMProvider interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..schemas import ConversationMessage, ToolCall, ToolDescriptor


@dataclass(frozen=True)
class ModelUsage:
    """Token counts reported for one model call.

    Attributes:
        input_tokens: Number of tokens in the prompt
        output_tokens: Number of tokens in the response
    """
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class ModelTurn:
    """One model response.

    Either a batch of tool calls, a terminal text answer, or (malformed)
    neither. When both are present the tool calls take precedence.

    Attributes:
        tool_calls: Tool calls requested in this turn, in model order
        text: Text answer, if any
        usage: Token counts for this call
    """
    tool_calls: List[ToolCall] = field(default_factory=list)
    text: Optional[str] = None
    usage: ModelUsage = field(default_factory=ModelUsage)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @property
    def has_text(self) -> bool:
        return bool(self.text)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    All LLM providers (OpenRouter, Anthropic, mock) implement this interface.
    Ensures consistent behavior across different LLM backends.

    Key Requirements:
    - Must accept the full ordered message history plus the tool catalog
    - Must report token usage for every call
    - Must raise ModelTimeoutError on timeout and ModelError on transport/API failures
    - Must not log raw prompts or responses above DEBUG
    """

    @abstractmethod
    def generate(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolDescriptor],
        timeout: float = 60.0
    ) -> ModelTurn:
        """Send the conversation to the model and return its next turn.

        Args:
            messages: Ordered conversation history
            tools: Tool catalog, sent verbatim
            timeout: Maximum time to wait for the model in seconds (default: 60.0)

        Returns:
            ModelTurn with tool calls and/or text, plus token usage

        Raises:
            ModelTimeoutError: If the request exceeds ``timeout``
            ModelMalformedResponseError: If tool call arguments cannot be decoded
            ModelError: For other provider errors
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier being used.

        Example: "gemini-1.5-pro" or "claude-3-5-sonnet-20241022"
        """
        pass
