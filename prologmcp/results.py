"""
Tool results returned by the session manager

A ToolResult is an ordered list of text blocks. Error blocks carry
annotations with priority 1.0; query faults are also addressed to both the
user and the assistant. The server converts blocks to MCP text content unchanged.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

ERROR_PRIORITY = 1.0
ERROR_AUDIENCE = ("user", "assistant")


@dataclass(frozen=True)
class Annotations:
    priority: float
    audience: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class TextBlock:
    text: str
    annotations: Optional[Annotations] = None

    @property
    def is_error(self) -> bool:
        return self.annotations is not None and self.annotations.priority == ERROR_PRIORITY


@dataclass
class ToolResult:
    blocks: List[TextBlock] = field(default_factory=list)

    @classmethod
    def text(cls, text: str) -> 'ToolResult':
        return cls([TextBlock(text)])

    @classmethod
    def error(cls, text: str) -> 'ToolResult':
        return cls([error_block(text)])

    @property
    def is_error(self) -> bool:
        return any(block.is_error for block in self.blocks)

    @property
    def texts(self) -> List[str]:
        return [block.text for block in self.blocks]

    def __str__(self) -> str:
        return "\n\n".join(self.texts)


def error_block(text: str, audience: Optional[Tuple[str, ...]] = None) -> TextBlock:
    return TextBlock(text, Annotations(ERROR_PRIORITY, audience))
