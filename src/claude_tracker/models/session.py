"""Session models for tracked Claude Code work."""

from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

NO_BRANCH = "N/A"


class EndReason(str, Enum):
    """Why a session was finalized."""

    PROCESS_EXIT = "process-exit"
    IDLE_TIMEOUT = "idle-timeout"
    MANUAL_STOP = "manual-stop"
    PROJECT_SWITCH = "project-switch"


class SessionHandle(BaseModel):
    """In-memory view of the session currently active in this process."""

    id: str
    project_path: Path
    project_name: str
    start_time: datetime
    branch: str = NO_BRANCH

    model_config = {"frozen": True}


class Session(BaseModel):
    """A finished, persisted unit of tracked work."""

    id: str
    project_path: Path
    project_name: str
    branch: str = NO_BRANCH
    feature: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    end_reason: EndReason
    commits: List[str] = []
    changed_files: List[str] = []
    pr_url: Optional[str] = None
    conversation_summary: Optional[str] = None
    record_synced: bool = False
    record_id: Optional[str] = None
    notification_sent: bool = False

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_times(self) -> "Session":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        return self

    @property
    def duration(self) -> timedelta:
        """Elapsed time between start and end."""
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> int:
        """Duration in whole milliseconds."""
        return int(self.duration.total_seconds() * 1000)
