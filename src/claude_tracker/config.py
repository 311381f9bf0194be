"""Configuration for Claude Tracker.

Settings live in ``~/.claude-tracker/config.json``. The directory can be
moved with the ``CLAUDE_TRACKER_HOME`` environment variable, which tests
use to keep state out of the real home directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


class FeatureFlags(BaseModel):
    """Optional integrations, all off by default."""

    airtable_sync: bool = False
    email_reports: bool = False
    per_session_emails: bool = False
    conversation_analysis: bool = False


class AirtableConfig(BaseModel):
    """Credentials and table for the external record store."""

    api_key: str
    base_id: str
    table_name: str = "Sessions"


class EmailConfig(BaseModel):
    """Resend credentials and addresses."""

    resend_api_key: str
    recipient_email: str
    from_email: str = "tracker@resend.dev"


class TrackerConfig(BaseModel):
    """Top-level tracker settings."""

    idle_timeout_minutes: float = 10
    poll_interval_seconds: float = 30
    features: FeatureFlags = FeatureFlags()
    airtable: Optional[AirtableConfig] = None
    email: Optional[EmailConfig] = None
    anthropic_api_key: Optional[str] = None
    claude_command: str = "claude"

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_minutes * 60

    @property
    def airtable_enabled(self) -> bool:
        return self.features.airtable_sync and self.airtable is not None

    @property
    def session_emails_enabled(self) -> bool:
        return (
            self.features.email_reports
            and self.features.per_session_emails
            and self.email is not None
        )

    def resolved_anthropic_key(self) -> Optional[str]:
        """API key from config, falling back to the environment."""
        return self.anthropic_api_key or os.environ.get("ANTHROPIC_API_KEY")


def get_config_dir() -> Path:
    """Get the tracker's state directory."""
    override = os.environ.get("CLAUDE_TRACKER_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude-tracker"


def ensure_config_dir() -> Path:
    """Create the state directory if needed and return it."""
    config_dir = get_config_dir()
    if not config_dir.exists():
        config_dir.mkdir(parents=True, mode=0o700)
        logger.debug("Created config directory: %s", config_dir)
    return config_dir


def load_config() -> TrackerConfig:
    """Load settings, writing defaults on first use."""
    config_file = ensure_config_dir() / CONFIG_FILENAME

    if not config_file.exists():
        config = TrackerConfig()
        save_config(config)
        return config

    try:
        return TrackerConfig.model_validate_json(config_file.read_text())
    except (ValidationError, ValueError, OSError) as e:
        logger.warning("Failed to read config, using defaults: %s", e)
        return TrackerConfig()


def save_config(config: TrackerConfig) -> None:
    """Write settings with owner-only permissions."""
    config_file = ensure_config_dir() / CONFIG_FILENAME
    config_file.write_text(json.dumps(config.model_dump(), indent=2))
    config_file.chmod(0o600)
    logger.debug("Config saved to %s", config_file)
