"""Conversation transcript and analysis models."""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel


class LineKind(str, Enum):
    """Classification of a single transcript line."""

    USER = "user"
    ASSISTANT = "assistant"
    UNKNOWN = "unknown"
    SKIP = "skip"


class TranscriptLine(BaseModel):
    """One parsed line of a Claude Code transcript."""

    kind: LineKind
    text: str = ""
    timestamp: Optional[str] = None

    @property
    def is_message(self) -> bool:
        return self.kind in (LineKind.USER, LineKind.ASSISTANT) and bool(self.text)


class ConversationAnalysis(BaseModel):
    """Structured summary of a session's conversation."""

    summary: str = ""
    suggested_features: List[str] = []
    files_discussed: List[str] = []
    complexity: Literal["low", "medium", "high"] = "medium"
