"""Active-session registry entry model."""

from typing import Optional

from pydantic import BaseModel, Field


class RegistryEntry(BaseModel):
    """Which session and process own a project, plus an optional note."""

    session_id: str = Field(alias="sessionId")
    pid: int
    note: Optional[str] = None

    model_config = {"populate_by_name": True}
