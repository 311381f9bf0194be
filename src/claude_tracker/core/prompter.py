"""Ask the user what a finished session was about."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt

from claude_tracker.models.conversation import ConversationAnalysis
from claude_tracker.models.suggestion import FeatureSuggestion, SuggestionSource
from claude_tracker.utils.formatting import format_duration

SOURCE_TAGS = {
    SuggestionSource.PULL_REQUEST: "[magenta]\\[PR][/magenta]",
    SuggestionSource.COMMIT: "[yellow]\\[commit][/yellow]",
    SuggestionSource.BRANCH: "[blue]\\[branch][/blue]",
    SuggestionSource.CONVERSATION: "[green]\\[AI][/green]",
}
NOTE_TAG = "[cyan]\\[note][/cyan]"


@dataclass
class PromptContext:
    """Everything shown to the user when asking for a description."""

    project_name: str
    branch: str
    duration: timedelta
    start_time: datetime
    suggestions: List[FeatureSuggestion] = field(default_factory=list)
    conversation_analysis: Optional[ConversationAnalysis] = None
    default_note: Optional[str] = None


class FeaturePrompter:
    """Terminal prompt offering ranked suggestions plus free text."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def prompt_for_feature(self, ctx: PromptContext) -> str:
        self._show_summary(ctx)

        choices = build_choices(ctx)
        if not choices:
            return self._ask_free_text("What did you work on?", default=ctx.default_note)

        self.console.print("[bold]What did you work on?[/bold]")
        for index, (label, _value) in enumerate(choices, start=1):
            self.console.print(f"  {index}. {label}")
        custom_index = len(choices) + 1
        self.console.print(f"  {custom_index}. [dim]Type a custom description[/dim]")

        while True:
            selected = IntPrompt.ask("Choose", console=self.console, default=1)
            if 1 <= selected <= len(choices):
                return choices[selected - 1][1]
            if selected == custom_index:
                return self._ask_free_text("Describe what you worked on")
            self.console.print(f"[red]Pick a number from 1 to {custom_index}[/red]")

    def _ask_free_text(self, question: str, default: Optional[str] = None) -> str:
        while True:
            if default:
                answer = Prompt.ask(question, console=self.console, default=default)
            else:
                answer = Prompt.ask(question, console=self.console)
            answer = (answer or "").strip()
            if answer:
                return answer
            self.console.print("[yellow]Please describe what you worked on[/yellow]")

    def _show_summary(self, ctx: PromptContext) -> None:
        summary = "\n".join(
            [
                f"[dim]Project:[/dim]  {escape(ctx.project_name)}",
                f"[dim]Branch:[/dim]   {escape(ctx.branch)}",
                f"[dim]Duration:[/dim] {format_duration(ctx.duration)}",
                f"[dim]Started:[/dim]  {ctx.start_time.astimezone().strftime('%H:%M:%S')}",
            ]
        )
        self.console.print()
        self.console.print(Panel(summary, title="Session Complete", expand=False))

        if ctx.conversation_analysis and ctx.conversation_analysis.summary:
            self.console.print("[bold cyan]Conversation Summary:[/bold cyan]")
            self.console.print(f"  [dim]{escape(ctx.conversation_analysis.summary)}[/dim]")
            self.console.print()


def build_choices(ctx: PromptContext) -> List[Tuple[str, str]]:
    """(label, value) pairs; a note, when present, is always first."""
    choices: List[Tuple[str, str]] = []
    seen = set()

    if ctx.default_note:
        choices.append((f"{NOTE_TAG} {escape(ctx.default_note)}", ctx.default_note))
        seen.add(ctx.default_note.lower())

    for suggestion in ctx.suggestions:
        lower = suggestion.text.lower()
        if lower in seen:
            continue
        seen.add(lower)
        tag = SOURCE_TAGS.get(suggestion.source, escape(f"[{suggestion.source.value}]"))
        choices.append((f"{tag} {escape(suggestion.text)}", suggestion.text))

    return choices
