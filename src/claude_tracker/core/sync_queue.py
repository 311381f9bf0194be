"""Deliver sessions that never reached the external record store."""

import logging
from dataclasses import dataclass
from typing import Protocol

from claude_tracker.models.session import Session
from claude_tracker.storage.sqlite import SessionStore

logger = logging.getLogger(__name__)


class RecordSync(Protocol):
    async def sync(self, session: Session) -> str: ...


@dataclass
class SyncResult:
    synced: int = 0
    failed: int = 0


class SyncRetryQueue:
    """Retry unsynced sessions, oldest first, one at a time.

    The queue is the ``record_synced`` flag in the session store, so a run
    can be interrupted at any point and the next run picks up whatever is
    still unsynced. There is no backoff: every run tries every session.
    """

    def __init__(self, store: SessionStore, record_sync: RecordSync):
        self.store = store
        self.record_sync = record_sync

    async def retry_failed_syncs(self) -> SyncResult:
        result = SyncResult()
        unsynced = self.store.get_unsynced()
        if not unsynced:
            return result

        logger.info("Retrying %d unsynced session(s)...", len(unsynced))
        for session in unsynced:
            try:
                record_id = await self.record_sync.sync(session)
                self.store.mark_synced(session.id, record_id)
                result.synced += 1
            except Exception as e:
                logger.warning("Retry sync failed for %s: %s", session.id, e)
                result.failed += 1

        logger.info("Synced %d session(s), %d still pending", result.synced, result.failed)
        return result
