"""Send session notifications and reports through Resend."""

import logging
from typing import Optional

import httpx

from claude_tracker.config import EmailConfig
from claude_tracker.email.template import build_session_email_html
from claude_tracker.errors import NotificationError
from claude_tracker.models.session import Session
from claude_tracker.utils.formatting import format_duration_short

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
SUBJECT_PREFIX = "[Claude Tracker]"


def session_subject(session: Session) -> str:
    return (
        f"{SUBJECT_PREFIX} {session.project_name}: {session.feature} "
        f"({format_duration_short(session.duration)})"
    )


class ResendNotifier:
    """Email delivery via the Resend HTTP API."""

    def __init__(
        self,
        config: EmailConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._client = client
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Authorization": f"Bearer {self.config.resend_api_key}"},
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._client

    async def send(self, session: Session) -> None:
        """Email the summary of one finished session.

        Raises:
            NotificationError: Resend rejected the message or was unreachable.
        """
        await self._post(session_subject(session), build_session_email_html(session))
        logger.debug("Session email sent for %s", session.id)

    async def send_report(self, subject: str, html: str) -> None:
        """Email an already rendered report.

        Raises:
            NotificationError: Resend rejected the message or was unreachable.
        """
        await self._post(subject, html)
        logger.debug("Report email sent: %s", subject)

    async def _post(self, subject: str, html: str) -> None:
        payload = {
            "from": self.config.from_email,
            "to": [self.config.recipient_email],
            "subject": subject,
            "html": html,
        }
        try:
            response = await self._get_client().post(RESEND_API_URL, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send email: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
