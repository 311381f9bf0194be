"""Data models for Claude Tracker."""

from .conversation import ConversationAnalysis, LineKind, TranscriptLine
from .git_context import CommitInfo, GitContext, PRInfo
from .registry import RegistryEntry
from .session import NO_BRANCH, EndReason, Session, SessionHandle
from .suggestion import FeatureSuggestion, SuggestionSource

__all__ = [
    "NO_BRANCH",
    "CommitInfo",
    "ConversationAnalysis",
    "EndReason",
    "FeatureSuggestion",
    "GitContext",
    "LineKind",
    "PRInfo",
    "RegistryEntry",
    "Session",
    "SessionHandle",
    "SuggestionSource",
    "TranscriptLine",
]
