"""Tests for configuration loading and logging setup."""

import json
import logging
import stat

from claude_tracker.config import (
    AirtableConfig,
    EmailConfig,
    FeatureFlags,
    TrackerConfig,
    get_config_dir,
    load_config,
    save_config,
)
from claude_tracker.logging_config import get_log_level


class TestConfig:
    def test_home_override(self, tracker_home):
        assert get_config_dir() == tracker_home

    def test_first_load_writes_defaults(self, tracker_home):
        config = load_config()

        assert config.idle_timeout_minutes == 10
        assert config.idle_timeout_seconds == 600
        assert config.poll_interval_seconds == 30
        config_file = tracker_home / "config.json"
        assert config_file.exists()
        assert stat.S_IMODE(config_file.stat().st_mode) == 0o600

    def test_round_trip(self, tracker_home):
        save_config(
            TrackerConfig(
                idle_timeout_minutes=5,
                features=FeatureFlags(airtable_sync=True),
                airtable=AirtableConfig(api_key="k", base_id="app1"),
            )
        )

        config = load_config()

        assert config.idle_timeout_minutes == 5
        assert config.airtable_enabled
        assert config.airtable.table_name == "Sessions"

    def test_invalid_file_falls_back_to_defaults(self, tracker_home):
        tracker_home.mkdir(parents=True)
        (tracker_home / "config.json").write_text(json.dumps({"idle_timeout_minutes": "soon"}))

        assert load_config() == TrackerConfig()

    def test_feature_gates(self):
        email = EmailConfig(resend_api_key="re", recipient_email="me@example.com")

        assert not TrackerConfig(airtable=None).airtable_enabled
        assert not TrackerConfig(
            features=FeatureFlags(email_reports=True), email=email
        ).session_emails_enabled
        assert TrackerConfig(
            features=FeatureFlags(email_reports=True, per_session_emails=True),
            email=email,
        ).session_emails_enabled

    def test_anthropic_key_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        assert TrackerConfig().resolved_anthropic_key() == "from-env"
        assert TrackerConfig(anthropic_api_key="own").resolved_anthropic_key() == "own"


class TestLogLevel:
    def test_verbose_wins(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_TRACKER_LOG_LEVEL", "ERROR")
        assert get_log_level(verbose=True) == logging.DEBUG

    def test_environment_level(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_TRACKER_LOG_LEVEL", "warning")
        assert get_log_level() == logging.WARNING

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_TRACKER_LOG_LEVEL", "chatty")
        assert get_log_level() == logging.INFO
