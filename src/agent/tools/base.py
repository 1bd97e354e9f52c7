"""
agent.tools.base - Base tool interface and result container.

In-process tools inherit from BaseTool and return ToolResult; they are
exposed to the model through LocalToolProvider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import BaseModel


@dataclass
class ToolResult:
    """Result returned by a tool execution: the text handed back to the model."""
    output: str


class BaseTool(ABC):
    """Abstract base for all in-process tools."""

    name: str
    description: str

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with already-validated arguments."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's input arguments."""
        ...
