"""Push finished sessions to an Airtable table."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from claude_tracker.config import AirtableConfig
from claude_tracker.errors import SyncError
from claude_tracker.models.session import Session

logger = logging.getLogger(__name__)

AIRTABLE_API_BASE = "https://api.airtable.com/v0"


def session_fields(session: Session) -> Dict[str, Any]:
    """Airtable column values for a session."""
    fields: Dict[str, Any] = {
        "Session ID": session.id,
        "Project": session.project_name,
        "Project Path": str(session.project_path),
        "Branch": session.branch,
        "Feature": session.feature,
        "Start Time": session.start_time.isoformat(),
        "End Time": session.end_time.isoformat(),
        "Duration (min)": round(session.duration.total_seconds() / 60),
        "End Reason": session.end_reason.value,
        "Commits": "\n".join(session.commits),
        "Changed Files": "\n".join(session.changed_files),
        "Summary": session.conversation_summary or "",
    }
    if session.pr_url:
        fields["PR URL"] = session.pr_url
    return fields


class AirtableSync:
    """Create one Airtable record per session."""

    def __init__(
        self,
        config: AirtableConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._client = client
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=AIRTABLE_API_BASE,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._client

    async def sync(self, session: Session) -> str:
        """Create the record and return its Airtable id.

        Raises:
            SyncError: The request failed or returned no record id.
        """
        url = f"/{self.config.base_id}/{quote(self.config.table_name, safe='')}"
        try:
            response = await self._get_client().post(
                url, json={"fields": session_fields(session), "typecast": True}
            )
            response.raise_for_status()
            record_id = response.json().get("id")
        except (httpx.HTTPError, ValueError) as e:
            raise SyncError(f"Airtable sync failed for {session.id}: {e}") from e

        if not record_id:
            raise SyncError(f"Airtable returned no record id for {session.id}")

        logger.debug("Session %s synced to Airtable: %s", session.id, record_id)
        return record_id

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
