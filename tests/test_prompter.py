"""Tests for the interactive feature prompt."""

import io
from datetime import timedelta
from unittest.mock import patch

import pytest
from rich.console import Console

from claude_tracker.core.prompter import FeaturePrompter, PromptContext, build_choices
from claude_tracker.models.conversation import ConversationAnalysis
from claude_tracker.models.suggestion import FeatureSuggestion, SuggestionSource

from conftest import START


def suggestion(text, source=SuggestionSource.COMMIT, confidence=0.8):
    return FeatureSuggestion(text=text, source=source, confidence=confidence)


def make_context(**kwargs):
    defaults = dict(
        project_name="api",
        branch="feature/oauth",
        duration=timedelta(minutes=75),
        start_time=START,
    )
    defaults.update(kwargs)
    return PromptContext(**defaults)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def prompter(output):
    return FeaturePrompter(Console(file=output, width=100))


class TestBuildChoices:
    def test_note_comes_first(self):
        ctx = make_context(
            suggestions=[suggestion("Add OAuth integration", SuggestionSource.PULL_REQUEST, 1.0)],
            default_note="Pair with Sam on OAuth",
        )

        values = [value for _label, value in build_choices(ctx)]

        assert values == ["Pair with Sam on OAuth", "Add OAuth integration"]

    def test_duplicates_of_note_are_dropped(self):
        ctx = make_context(
            suggestions=[suggestion("fix login")], default_note="Fix login"
        )
        assert [value for _label, value in build_choices(ctx)] == ["Fix login"]

    def test_labels_escape_markup(self):
        ctx = make_context(suggestions=[suggestion("Handle [bold] tags")])
        label, value = build_choices(ctx)[0]
        assert value == "Handle [bold] tags"
        assert "\\[bold]" in label


class TestFeaturePrompter:
    def test_choose_suggestion(self, prompter, output):
        ctx = make_context(
            suggestions=[suggestion("Add OAuth integration"), suggestion("Fix login")],
            conversation_analysis=ConversationAnalysis(summary="Worked on OAuth."),
        )

        with patch("claude_tracker.core.prompter.IntPrompt.ask", return_value=2):
            assert prompter.prompt_for_feature(ctx) == "Fix login"

        text = output.getvalue()
        assert "Session Complete" in text
        assert "1h 15m 0s" in text
        assert "Worked on OAuth." in text

    def test_custom_description(self, prompter):
        ctx = make_context(suggestions=[suggestion("Add OAuth integration")])

        with patch("claude_tracker.core.prompter.IntPrompt.ask", return_value=2), patch(
            "claude_tracker.core.prompter.Prompt.ask", return_value="  Write docs  "
        ):
            assert prompter.prompt_for_feature(ctx) == "Write docs"

    def test_out_of_range_reasks(self, prompter, output):
        ctx = make_context(suggestions=[suggestion("Add OAuth integration")])

        with patch("claude_tracker.core.prompter.IntPrompt.ask", side_effect=[9, 1]):
            assert prompter.prompt_for_feature(ctx) == "Add OAuth integration"

        assert "Pick a number from 1 to 2" in output.getvalue()

    def test_free_text_reasks_on_empty(self, prompter):
        with patch(
            "claude_tracker.core.prompter.Prompt.ask", side_effect=["", "   ", "Refactor"]
        ) as ask:
            assert prompter.prompt_for_feature(make_context()) == "Refactor"
        assert ask.call_count == 3
