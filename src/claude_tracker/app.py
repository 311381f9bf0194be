"""Build tracker components from configuration."""

import logging
from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from claude_tracker.config import TrackerConfig, ensure_config_dir
from claude_tracker.core.conversation import ConversationAnalyzer
from claude_tracker.core.git_context import GitContextProvider
from claude_tracker.core.process_manager import ClaudeProcess
from claude_tracker.core.prompter import FeaturePrompter
from claude_tracker.core.registry import REGISTRY_FILENAME, JsonFileRegistry
from claude_tracker.core.session_manager import SessionManager
from claude_tracker.core.sync_queue import SyncRetryQueue
from claude_tracker.email.resend import ResendNotifier
from claude_tracker.storage.airtable import AirtableSync
from claude_tracker.storage.sqlite import DB_FILENAME, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Tracker:
    """The collaborators one CLI invocation works with."""

    config: TrackerConfig
    store: SessionStore
    registry: JsonFileRegistry
    record_sync: Optional[AirtableSync] = None
    notifier: Optional[ResendNotifier] = None
    report_notifier: Optional[ResendNotifier] = None
    analyzer: Optional[ConversationAnalyzer] = None

    @property
    def sync_queue(self) -> Optional[SyncRetryQueue]:
        if self.record_sync is None:
            return None
        return SyncRetryQueue(self.store, self.record_sync)

    def session_manager(self, console: Optional[Console] = None) -> SessionManager:
        return SessionManager(
            registry=self.registry,
            store=self.store,
            git=GitContextProvider(),
            prompter=FeaturePrompter(console),
            analyzer=self.analyzer,
            record_sync=self.record_sync,
            notifier=self.notifier,
            sync_queue=self.sync_queue,
            process_factory=lambda: ClaudeProcess(self.config.claude_command),
            idle_timeout=self.config.idle_timeout_seconds,
            poll_interval=self.config.poll_interval_seconds,
        )

    async def aclose(self) -> None:
        for client in (self.record_sync, self.notifier, self.report_notifier):
            if client is not None:
                await client.aclose()
        self.store.close()


def build_registry() -> JsonFileRegistry:
    return JsonFileRegistry(ensure_config_dir() / REGISTRY_FILENAME)


def build_tracker(config: TrackerConfig) -> Tracker:
    """Wire the store, registry and whichever integrations are enabled."""
    config_dir = ensure_config_dir()
    tracker = Tracker(
        config=config,
        store=SessionStore(config_dir / DB_FILENAME),
        registry=build_registry(),
    )

    if config.airtable_enabled:
        tracker.record_sync = AirtableSync(config.airtable)
    if config.session_emails_enabled:
        tracker.notifier = ResendNotifier(config.email)
    if config.features.email_reports and config.email is not None:
        tracker.report_notifier = tracker.notifier or ResendNotifier(config.email)

    if config.features.conversation_analysis:
        api_key = config.resolved_anthropic_key()
        if api_key:
            tracker.analyzer = ConversationAnalyzer(api_key)
        else:
            logger.warning("Conversation analysis enabled but no Anthropic API key set")

    return tracker
