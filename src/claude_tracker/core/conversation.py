"""Summarize the Claude Code conversation that happened during a session."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import anthropic
from pydantic import ValidationError

from claude_tracker.models.conversation import (
    ConversationAnalysis,
    LineKind,
    TranscriptLine,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_MESSAGES = 50
MAX_MESSAGE_CHARS = 2000

ANALYSIS_PROMPT = """Analyze this Claude Code conversation and provide a structured summary. The conversation is between a developer (user) and Claude (assistant).

<conversation>
{conversation}
</conversation>

Respond with JSON only (no markdown code fences):
{{
  "summary": "1-2 sentence summary of what was worked on",
  "suggested_features": ["2-4 short feature/task descriptions based on the work done"],
  "files_discussed": ["list of file paths mentioned"],
  "complexity": "low|medium|high"
}}"""


def default_projects_dir() -> Path:
    return Path.home() / ".claude" / "projects"


def _extract_text(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()[:MAX_MESSAGE_CHARS]
    if isinstance(content, list):
        parts = [
            item.get("text", "")
            for item in content
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        return "\n".join(p for p in parts if p).strip()[:MAX_MESSAGE_CHARS]
    return ""


def parse_transcript_line(line: str) -> TranscriptLine:
    """Classify one JSONL transcript line.

    Malformed lines come back as ``SKIP`` rather than raising, so one bad
    line never aborts reading a transcript.
    """
    line = line.strip()
    if not line:
        return TranscriptLine(kind=LineKind.SKIP)

    try:
        entry = json.loads(line)
    except ValueError:
        return TranscriptLine(kind=LineKind.SKIP)
    if not isinstance(entry, dict):
        return TranscriptLine(kind=LineKind.SKIP)

    message = entry.get("message")
    role = entry.get("role")
    if isinstance(message, dict):
        role = message.get("role", role)

    timestamp = entry.get("timestamp")
    if not isinstance(timestamp, str):
        timestamp = None

    entry_type = entry.get("type")
    if entry_type in ("user", "human") or role == "user":
        kind = LineKind.USER
    elif entry_type == "assistant" or role == "assistant":
        kind = LineKind.ASSISTANT
    else:
        return TranscriptLine(kind=LineKind.UNKNOWN, timestamp=timestamp)

    if isinstance(message, dict):
        text = _extract_text(message.get("content"))
    elif "content" in entry:
        text = _extract_text(entry.get("content"))
    else:
        text = _extract_text(message)

    return TranscriptLine(kind=kind, text=text, timestamp=timestamp)


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.astimezone()
    return parsed


def encoded_project_dirs(projects_dir: Path, project_path: Path) -> List[Path]:
    """Candidate transcript directories for a project path.

    Claude Code names the directory after the absolute path with
    separators (and other punctuation) replaced by dashes.
    """
    raw = str(project_path)
    candidates = [
        re.sub(r"[^A-Za-z0-9]", "-", raw),
        raw.replace("/", "-"),
        raw.lstrip("/").replace("/", "-"),
    ]
    unique: List[Path] = []
    for name in candidates:
        path = projects_dir / name
        if path not in unique:
            unique.append(path)
    return unique


def find_conversation_messages(
    project_path: Path,
    start_time: datetime,
    end_time: datetime,
    projects_dir: Optional[Path] = None,
) -> List[TranscriptLine]:
    """User and assistant messages within the session window, newest last."""
    projects_dir = projects_dir or default_projects_dir()
    project_dir = next(
        (
            d
            for d in encoded_project_dirs(projects_dir, project_path)
            if d.is_dir()
        ),
        None,
    )
    if project_dir is None:
        logger.debug("No conversation directory found for %s", project_path)
        return []

    messages: List[TranscriptLine] = []
    for transcript in sorted(project_dir.glob("*.jsonl")):
        try:
            with open(transcript, encoding="utf-8", errors="replace") as f:
                for raw_line in f:
                    parsed = parse_transcript_line(raw_line)
                    if not parsed.is_message:
                        continue
                    if parsed.timestamp:
                        ts = _parse_timestamp(parsed.timestamp)
                        if ts is not None and not (start_time <= ts <= end_time):
                            continue
                    messages.append(parsed)
        except OSError as e:
            logger.debug("Skipping unreadable transcript %s: %s", transcript, e)

    return messages[-MAX_MESSAGES:]


def parse_analysis(text: str) -> Optional[ConversationAnalysis]:
    """Parse the model's JSON reply, tolerating stray code fences."""
    cleaned = text.strip()
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", cleaned, re.DOTALL)
    if fenced:
        cleaned = fenced.group(1)

    try:
        data: Dict[str, Any] = json.loads(cleaned)
    except ValueError as e:
        logger.debug("Failed to parse conversation analysis: %s", e)
        return None
    if not isinstance(data, dict):
        return None

    # Accept the camelCase keys older prompts produced
    for camel, snake in (
        ("suggestedFeatures", "suggested_features"),
        ("filesDiscussed", "files_discussed"),
    ):
        if camel in data and snake not in data:
            data[snake] = data.pop(camel)

    try:
        return ConversationAnalysis.model_validate(data)
    except ValidationError as e:
        logger.debug("Conversation analysis had unexpected shape: %s", e)
        return None


class ConversationAnalyzer:
    """Summarize session transcripts with the Anthropic API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        projects_dir: Optional[Path] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model = model
        self.projects_dir = projects_dir
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def analyze(
        self, project_path: Path, start_time: datetime, end_time: datetime
    ) -> Optional[ConversationAnalysis]:
        messages = find_conversation_messages(
            project_path, start_time, end_time, self.projects_dir
        )
        if not messages:
            logger.debug("No conversation messages found for this session")
            return None

        logger.debug("Found %d conversation messages, analyzing...", len(messages))
        conversation = "\n\n".join(f"{m.kind.value}: {m.text}" for m in messages)

        response = await self._client.messages.create(
            model=self.model,
            max_tokens=1024,
            messages=[
                {
                    "role": "user",
                    "content": ANALYSIS_PROMPT.format(conversation=conversation),
                }
            ],
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return parse_analysis(text)
