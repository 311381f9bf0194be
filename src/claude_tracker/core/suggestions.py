"""Rank candidate feature descriptions from git and conversation context."""

import re
from typing import List, Optional, Set

from claude_tracker.models.conversation import ConversationAnalysis
from claude_tracker.models.git_context import GitContext
from claude_tracker.models.session import NO_BRANCH
from claude_tracker.models.suggestion import FeatureSuggestion, SuggestionSource

MAX_COMMITS = 5
MIN_TEXT_LENGTH = 3
WORD_OVERLAP_THRESHOLD = 0.6

PR_CONFIDENCE = 1.0
COMMIT_CONFIDENCE = 0.8
CONVERSATION_CONFIDENCE = 0.7
BRANCH_CONFIDENCE = 0.6

TRUNK_BRANCHES = {"main", "master"}
BRANCH_PREFIX_RE = re.compile(
    r"^(feature|feat|fix|bugfix|hotfix|chore|refactor)/", re.IGNORECASE
)


def build_suggestions(
    git_context: GitContext, analysis: Optional[ConversationAnalysis] = None
) -> List[FeatureSuggestion]:
    """Build a deduplicated list of suggestions, highest confidence first.

    Candidates are considered in priority order (pull request, commits,
    conversation, branch). A candidate that duplicates or heavily overlaps
    an earlier one is dropped, so the earlier, more trusted source wins.
    """
    suggestions: List[FeatureSuggestion] = []
    accepted: List[str] = []

    def add(text: str, source: SuggestionSource, confidence: float) -> None:
        normalized = normalize(text)
        if len(normalized) < MIN_TEXT_LENGTH:
            return
        if any(is_similar(existing, normalized) for existing in accepted):
            return
        accepted.append(normalized)
        suggestions.append(
            FeatureSuggestion(text=text.strip(), source=source, confidence=confidence)
        )

    current_pr = git_context.current_pr()
    if current_pr:
        add(current_pr.title, SuggestionSource.PULL_REQUEST, PR_CONFIDENCE)

    for commit in git_context.recent_commits[:MAX_COMMITS]:
        add(commit.message, SuggestionSource.COMMIT, COMMIT_CONFIDENCE)

    if analysis:
        for feature in analysis.suggested_features:
            add(feature, SuggestionSource.CONVERSATION, CONVERSATION_CONFIDENCE)

    branch_feature = branch_to_feature(git_context.branch)
    if branch_feature:
        add(branch_feature, SuggestionSource.BRANCH, BRANCH_CONFIDENCE)

    # sorted() is stable, so equal confidences keep priority order
    return sorted(suggestions, key=lambda s: s.confidence, reverse=True)


def normalize(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    lowered = text.lower()
    stripped = re.sub(r"[^\w\s]|_", " ", lowered)
    return re.sub(r"\s+", " ", stripped).strip()


def word_overlap(a: str, b: str) -> float:
    """Intersection-over-union of the word sets of two normalized strings."""
    words_a: Set[str] = set(a.split())
    words_b: Set[str] = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_similar(a: str, b: str) -> bool:
    """Whether two normalized candidates describe the same work."""
    if a == b or a in b or b in a:
        return True
    return word_overlap(a, b) > WORD_OVERLAP_THRESHOLD


def branch_to_feature(branch: Optional[str]) -> str:
    """Turn ``feature/token-refresh`` into ``Token refresh``.

    Returns an empty string for trunk branches, the no-repository
    sentinel, and names too short to be useful.
    """
    if not branch or branch in TRUNK_BRANCHES or branch == NO_BRANCH:
        return ""

    cleaned = BRANCH_PREFIX_RE.sub("", branch)
    cleaned = re.sub(r"[-_]", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    if len(cleaned) < MIN_TEXT_LENGTH:
        return ""
    return cleaned[0].upper() + cleaned[1:]
