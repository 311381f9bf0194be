"""Feature suggestion model."""

from enum import Enum

from pydantic import BaseModel, Field


class SuggestionSource(str, Enum):
    """Where a suggested feature description came from."""

    PULL_REQUEST = "pr"
    COMMIT = "commit"
    CONVERSATION = "conversation"
    BRANCH = "branch"


class FeatureSuggestion(BaseModel):
    """A candidate description of what was worked on."""

    text: str
    source: SuggestionSource
    confidence: float = Field(ge=0.0, le=1.0)
