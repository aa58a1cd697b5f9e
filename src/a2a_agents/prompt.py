"""Prompt assembly for one agent turn.

``build_prompt`` is a pure function: the same role prompt and request always
produce the same message, which keeps it testable by golden comparison.
"""
import json
from typing import Any

from .schemas import AgentRequest, ConversationMessage


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def build_prompt(role_prompt: str, request: AgentRequest) -> ConversationMessage:
    """Build the opening user message for an agent request.

    Sections, in order:
        SYSTEM INSTRUCTIONS   the agent's role prompt
        PREVIOUS AGENT RESULTS one block per prior stage, in workflow order
        ADDITIONAL CONTEXT    context as JSON with sorted keys
        USER QUERY            the raw query

    The middle two sections are omitted when empty.

    Args:
        role_prompt: Role instructions of the agent
        request: The incoming agent request

    Returns:
        A single ``user`` ConversationMessage with one text part
    """
    lines = ["SYSTEM INSTRUCTIONS:", role_prompt, ""]

    if request.previous_results:
        lines.append("PREVIOUS AGENT RESULTS:")
        for prior in request.previous_results:
            lines.append(f"\n--- {prior.stage_name} ---")
            lines.append(_render(prior.result))
        lines.append("")

    if request.context:
        lines.append("ADDITIONAL CONTEXT:")
        lines.append(_render(request.context))
        lines.append("")

    lines.append("USER QUERY:")
    lines.append(request.query)

    return ConversationMessage.from_text("user", "\n".join(lines))
