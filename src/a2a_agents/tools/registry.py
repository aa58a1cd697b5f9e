"""Tool catalog for one agent.

Merges locally defined tools and descriptors advertised by a remote tool
server into a single addressable catalog.

Conflict policy (deterministic): **local wins**. A remote descriptor whose
name matches a registered local tool is dropped with a warning, and so is a
remote descriptor repeating a name earlier in the same batch. Registering two
local tools with the same name is a configuration error.

Catalog order is the order the model sees: local tools in registration order,
then remote tools in the order the server declared them.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import ConfigurationError, ToolNotFoundError
from ..schemas import ToolDescriptor
from .base import LocalTool

logger = logging.getLogger("a2a_agents.tools")


class ToolRegistry:
    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger
        self._local: Dict[str, LocalTool] = {}
        self._remote: Dict[str, ToolDescriptor] = {}

    def register_local(self, tool: LocalTool) -> None:
        """Add a local tool.

        Raises:
            ConfigurationError: If a local tool with the same name exists
        """
        if tool.name in self._local:
            raise ConfigurationError(
                f"Duplicate local tool: {tool.name}",
                details={"tool": tool.name}
            )
        if tool.name in self._remote:
            self._log.warning("Local tool %s shadows remote tool of the same name", tool.name)
            del self._remote[tool.name]
        self._local[tool.name] = tool

    def merge_remote(self, descriptors: Iterable[ToolDescriptor]) -> List[ToolDescriptor]:
        """Replace the remote part of the catalog and return the full catalog."""
        merged: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            name = descriptor.name
            if name in self._local:
                self._log.warning("Remote tool %s ignored: a local tool has the same name", name)
                continue
            if name in merged:
                self._log.warning("Remote tool %s declared twice; keeping the first", name)
                continue
            merged[name] = descriptor.model_copy(update={"origin": "remote"})
        self._remote = merged
        return self.catalog

    def resolve(self, name: str) -> ToolDescriptor:
        """Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name
        """
        if name in self._local:
            return self._local[name].descriptor
        if name in self._remote:
            return self._remote[name]
        raise ToolNotFoundError(name)

    def executor(self, name: str) -> Callable:
        """Return the executor of a local tool.

        Raises:
            ToolNotFoundError: If no local tool has that name
        """
        tool = self._local.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool.execute

    @property
    def catalog(self) -> List[ToolDescriptor]:
        return [t.descriptor for t in self._local.values()] + list(self._remote.values())

    def __contains__(self, name: object) -> bool:
        return name in self._local or name in self._remote

    def __len__(self) -> int:
        return len(self._local) + len(self._remote)
