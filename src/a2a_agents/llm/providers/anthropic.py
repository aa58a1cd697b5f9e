"""Anthropic (Claude) LLM provider.

This provider integrates with Anthropic's Messages API using native tool use
(``tool_use`` / ``tool_result`` content blocks).
"""
import os
import json
from typing import Any, Dict, List, Sequence

from ..base import LLMProvider, ModelTurn, ModelUsage
from ...errors import ModelError, ModelTimeoutError
from ...schemas import ConversationMessage, ToolCall, ToolDescriptor


def _tool_use_id(message_index: int, position: int) -> str:
    return f"toolu_{message_index}_{position}"


def to_anthropic_messages(messages: Sequence[ConversationMessage]) -> List[Dict[str, Any]]:
    """Convert conversation history to Anthropic content-block messages."""
    converted: List[Dict[str, Any]] = []
    for index, message in enumerate(messages):
        blocks: List[Dict[str, Any]] = []
        for position, part in enumerate(message.parts):
            if part.text is not None:
                blocks.append({"type": "text", "text": part.text})
            elif part.tool_call is not None:
                blocks.append({
                    "type": "tool_use",
                    "id": _tool_use_id(index, position),
                    "name": part.tool_call.name,
                    "input": part.tool_call.args,
                })
            elif part.tool_result is not None:
                payload = part.tool_result.payload
                blocks.append({
                    "type": "tool_result",
                    "tool_use_id": _tool_use_id(index - 1, position),
                    "content": payload if isinstance(payload, str) else json.dumps(payload, default=str),
                    "is_error": part.tool_result.is_error,
                })
        converted.append({
            "role": "assistant" if message.role == "model" else "user",
            "content": blocks,
        })
    return converted


class AnthropicProvider(LLMProvider):
    """Anthropic Claude API provider.

    Requires ANTHROPIC_API_KEY environment variable.

    Example:
        >>> import os
        >>> os.environ["ANTHROPIC_API_KEY"] = "sk-ant-..."
        >>> provider = AnthropicProvider()
        >>> turn = provider.generate(messages, catalog)
    """

    def __init__(self, model: str | None = None, api_key: str | None = None, max_tokens: int = 4096):
        """Initialize Anthropic provider.

        Args:
            model: Model to use (default: from ANTHROPIC_MODEL env var or claude-3-5-sonnet-20241022)
            api_key: API key (default: from ANTHROPIC_API_KEY env var)
            max_tokens: Output token cap per call

        Raises:
            ModelError: If API key is not provided or the SDK is missing
        """
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ModelError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022")
        self._max_tokens = max_tokens

        # Lazy import to avoid requiring anthropic package if not used
        try:
            import anthropic
        except ImportError:
            raise ModelError("anthropic package not installed. Run: pip install anthropic")
        self._sdk = anthropic
        self._client = anthropic.Anthropic(api_key=self._api_key)

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolDescriptor],
        timeout: float = 60.0
    ) -> ModelTurn:
        """Send the conversation to Claude and return the next turn.

        Raises:
            ModelTimeoutError: If request exceeds timeout
            ModelError: For API errors
        """
        request: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": to_anthropic_messages(messages),
            "timeout": timeout,
        }
        if tools:
            request["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]

        try:
            message = self._client.messages.create(**request)
        except self._sdk.APITimeoutError as e:
            raise ModelTimeoutError(
                f"Anthropic request exceeded timeout of {timeout}s: {e}",
                timeout_seconds=timeout
            )
        except self._sdk.APIConnectionError as e:
            raise ModelError(f"Anthropic connection failed: {e}", retryable=True)
        except self._sdk.APIStatusError as e:
            raise ModelError(
                f"Anthropic API returned status {e.status_code}: {e}",
                retryable=e.status_code == 429 or e.status_code >= 500,
                details={"status_code": e.status_code}
            )

        calls: List[ToolCall] = []
        texts: List[str] = []
        for block in message.content or []:
            if block.type == "tool_use":
                calls.append(ToolCall(name=block.name, args=dict(block.input or {})))
            elif block.type == "text" and block.text:
                texts.append(block.text)

        usage = ModelUsage(
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )
        return ModelTurn(tool_calls=calls, text="\n".join(texts) or None, usage=usage)

    @property
    def model_name(self) -> str:
        """Return the Claude model being used."""
        return self._model
