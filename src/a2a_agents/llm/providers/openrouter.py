"""OpenRouter LLM provider.

This provider integrates with OpenRouter's OpenAI-compatible Chat Completions
API, using native function calling (``tools`` / ``tool_calls``).
OpenRouter provides access to 200+ AI models through a single API.
"""
import os
import json
from typing import Any, Dict, List, Sequence

import requests

from ..base import LLMProvider, ModelTurn, ModelUsage
from ...errors import ModelError, ModelMalformedResponseError, ModelTimeoutError
from ...schemas import ConversationMessage, ToolCall, ToolDescriptor


def _call_id(message_index: int, position: int) -> str:
    """Synthetic tool call id.

    Results are aligned with calls by position, and the result message always
    directly follows its call message, so ids can be derived from indices.
    """
    return f"call_{message_index}_{position}"


def to_openai_messages(messages: Sequence[ConversationMessage]) -> List[Dict[str, Any]]:
    """Convert conversation history to OpenAI chat messages."""
    converted: List[Dict[str, Any]] = []
    for index, message in enumerate(messages):
        calls = [p.tool_call for p in message.parts if p.tool_call is not None]
        results = [p.tool_result for p in message.parts if p.tool_result is not None]
        text = message.text

        if message.role == "model":
            entry: Dict[str, Any] = {"role": "assistant", "content": text or None}
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": _call_id(index, position),
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.args)},
                    }
                    for position, call in enumerate(calls)
                ]
            converted.append(entry)
            continue

        for position, result in enumerate(results):
            content = result.payload if isinstance(result.payload, str) else json.dumps(result.payload, default=str)
            converted.append({
                "role": "tool",
                "tool_call_id": _call_id(index - 1, position),
                "content": content,
            })
        if text:
            converted.append({"role": "user", "content": text})
    return converted


def to_openai_tools(tools: Sequence[ToolDescriptor]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
        for tool in tools
    ]


def parse_openai_message(message: Dict[str, Any]) -> tuple[List[ToolCall], str | None]:
    """Extract tool calls and text from an OpenAI chat completion message.

    Raises:
        ModelMalformedResponseError: If tool call arguments are not valid JSON
    """
    calls: List[ToolCall] = []
    for raw in message.get("tool_calls") or []:
        function = raw.get("function") or {}
        arguments = function.get("arguments") or "{}"
        try:
            args = json.loads(arguments) if isinstance(arguments, str) else dict(arguments)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise ModelMalformedResponseError(
                f"Invalid tool call arguments for {function.get('name')}: {e}",
                details={"tool": function.get("name")}
            )
        if not isinstance(args, dict):
            raise ModelMalformedResponseError(
                f"Tool call arguments for {function.get('name')} must be an object",
                details={"tool": function.get("name")}
            )
        calls.append(ToolCall(name=function.get("name", ""), args=args))
    return calls, message.get("content")


class OpenRouterProvider(LLMProvider):
    """OpenRouter API provider.

    Requires OPENROUTER_API_KEY environment variable or explicit API key.

    Example:
        >>> import os
        >>> os.environ["OPENROUTER_API_KEY"] = "sk-or-v1-..."
        >>> provider = OpenRouterProvider(model="google/gemini-flash-1.5")
        >>> turn = provider.generate(messages, catalog, timeout=30.0)
    """

    # OpenRouter API endpoint
    API_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        session: requests.Session | None = None
    ):
        """Initialize OpenRouter provider.

        Args:
            model: Model to use (default: from OPENROUTER_MODEL env var or google/gemini-pro-1.5)
            api_key: API key (default: from OPENROUTER_API_KEY env var)
            session: Optional requests session (tests); default is per-call ``requests.post``

        Raises:
            ModelError: If API key is not provided
        """
        self._api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        if not self._api_key:
            raise ModelError("OPENROUTER_API_KEY environment variable not set or api_key not provided")

        self._model = model or os.getenv("OPENROUTER_MODEL", "google/gemini-pro-1.5")
        self._http = session or requests

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        tools: Sequence[ToolDescriptor],
        timeout: float = 60.0
    ) -> ModelTurn:
        """Send the conversation to OpenRouter and return the next turn.

        Args:
            messages: Ordered conversation history
            tools: Tool catalog
            timeout: Maximum time to wait for response in seconds (default: 60.0)

        Returns:
            ModelTurn with tool calls and/or text

        Raises:
            ModelTimeoutError: If request exceeds timeout
            ModelMalformedResponseError: If tool call arguments cannot be decoded
            ModelError: For API errors
        """
        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": to_openai_messages(messages),
        }
        if tools:
            payload["tools"] = to_openai_tools(tools)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "X-Title": "A2A Agents"
        }

        try:
            response = self._http.post(
                self.API_ENDPOINT,
                json=payload,
                headers=headers,
                timeout=timeout
            )
        except requests.exceptions.Timeout as e:
            raise ModelTimeoutError(
                f"OpenRouter request exceeded timeout of {timeout}s: {e}",
                timeout_seconds=timeout
            )
        except requests.exceptions.RequestException as e:
            raise ModelError(f"OpenRouter API request failed: {e}", retryable=True)

        if response.status_code != 200:
            raise ModelError(
                f"OpenRouter API returned status {response.status_code}: {response.text}",
                retryable=response.status_code in self.RETRYABLE_STATUS,
                details={"status_code": response.status_code}
            )

        try:
            response_data = response.json()
        except ValueError as e:
            raise ModelMalformedResponseError(f"Invalid JSON from OpenRouter: {e}")

        choices = response_data.get("choices") or []
        if not choices:
            raise ModelMalformedResponseError("Empty response from OpenRouter")

        calls, text = parse_openai_message(choices[0].get("message") or {})
        usage_obj = response_data.get("usage") or {}
        usage = ModelUsage(
            input_tokens=int(usage_obj.get("prompt_tokens", 0)),
            output_tokens=int(usage_obj.get("completion_tokens", 0)),
        )
        return ModelTurn(tool_calls=calls, text=text, usage=usage)

    @property
    def model_name(self) -> str:
        """Return the OpenRouter model being used."""
        return self._model
