"""Wire and in-process data model.

Payloads travel as JSON with camelCase keys; Python code uses snake_case.
Both spellings are accepted on input (``populate_by_name``).
"""
import math
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Role = Literal["user", "model"]
ToolOrigin = Literal["local", "remote"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolCall(WireModel):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolInvocationResult(WireModel):
    name: str
    payload: Any = None
    is_error: bool = False


class MessagePart(WireModel):
    """One part of a conversation message: text, a tool call, or a tool result."""
    text: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolInvocationResult] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "MessagePart":
        filled = [p for p in (self.text, self.tool_call, self.tool_result) if p is not None]
        if len(filled) != 1:
            raise ValueError("message part must hold exactly one of text, tool_call, tool_result")
        return self


class ConversationMessage(WireModel):
    role: Role
    parts: List[MessagePart]

    @classmethod
    def from_text(cls, role: Role, text: str) -> "ConversationMessage":
        return cls(role=role, parts=[MessagePart(text=text)])

    @classmethod
    def from_tool_calls(cls, calls: List[ToolCall]) -> "ConversationMessage":
        return cls(role="model", parts=[MessagePart(tool_call=c) for c in calls])

    @classmethod
    def from_tool_results(cls, results: List[ToolInvocationResult]) -> "ConversationMessage":
        return cls(role="user", parts=[MessagePart(tool_result=r) for r in results])

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.parts if p.text is not None)


class ToolDescriptor(WireModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    origin: ToolOrigin = "local"


class PriorResult(WireModel):
    """Raw result of an earlier workflow stage."""
    stage_name: str
    result: Any = None


class AgentRequest(WireModel):
    """One request to an agent.

    Frozen: the correlation id is assigned once at the boundary
    (``model_copy(update=...)``) and never changed afterwards.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    correlation_id: Optional[str] = None
    query: str = Field(..., min_length=1)
    context: Optional[Dict[str, Any]] = None
    previous_results: List[PriorResult] = Field(default_factory=list)


class TokenUsage(WireModel):
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)
    estimated_cost: float = Field(0.0, ge=0.0)

    @model_validator(mode="after")
    def _total_matches(self) -> "TokenUsage":
        if self.total_tokens != self.input_tokens + self.output_tokens:
            raise ValueError(
                f"total_tokens ({self.total_tokens}) must equal input_tokens + output_tokens "
                f"({self.input_tokens + self.output_tokens})"
            )
        return self

    @classmethod
    def aggregate(cls, usages: Iterable["TokenUsage"]) -> "TokenUsage":
        """Field-wise sum.

        Integer fields sum exactly and the cost uses ``math.fsum`` (correctly
        rounded), so the result does not depend on ordering or grouping.
        """
        usages = list(usages)
        input_tokens = sum(u.input_tokens for u in usages)
        output_tokens = sum(u.output_tokens for u in usages)
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            estimated_cost=math.fsum(u.estimated_cost for u in usages),
        )

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage.aggregate([self, other])


class AgentResponse(WireModel):
    correlation_id: str
    agent_name: str = ""
    result: Any = None
    execution_time_ms: float = Field(..., ge=0.0)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    tools_used: List[str] = Field(default_factory=list)
    iterations: int = Field(0, ge=0)


class WorkflowInput(WireModel):
    query: str = Field(..., min_length=1)
    context: Optional[Dict[str, Any]] = None
    correlation_id: Optional[str] = None
    workflow: Literal["research-analysis-writer"] = "research-analysis-writer"


class StageSummary(WireModel):
    name: str
    execution_time_ms: float
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    success: bool
    tools_used: List[str] = Field(default_factory=list)
    iterations: int = 0


class WorkflowResult(WireModel):
    correlation_id: str
    workflow_name: str
    result: Any = None
    stages: List[StageSummary]
    intermediate_results: List[PriorResult] = Field(default_factory=list)
    total_token_usage: TokenUsage
    total_cost: float = Field(0.0, ge=0.0)
    total_execution_time_ms: float
