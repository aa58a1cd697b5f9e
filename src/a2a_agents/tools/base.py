from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol

from ..schemas import ToolDescriptor

class ToolExecutor(Protocol):
    def __call__(self, args: Dict[str, Any]) -> Any:
        """Execute the tool with the arguments the model supplied.

        Executors must not share mutable state with each other: calls from one
        model turn run concurrently.
        """
        ...

@dataclass(frozen=True)
class LocalTool:
    name: str
    description: str
    execute: Callable[[Dict[str, Any]], Any]
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            origin="local",
        )
