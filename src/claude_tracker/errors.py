"""Exceptions raised by Claude Tracker."""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class AlreadyActiveError(TrackerError):
    """A session is already active in this process."""


class NoActiveSessionError(TrackerError):
    """There is no active session to act on."""


class NoActiveSessionForPathError(NoActiveSessionError):
    """No registry entry exists for the given project path."""

    def __init__(self, project_path):
        self.project_path = project_path
        super().__init__(f"No active session for {project_path}")


class ProcessLaunchError(TrackerError):
    """The watched process could not be started."""


class SessionPersistenceError(TrackerError):
    """The finished session could not be written to local storage."""


class SyncError(TrackerError):
    """Delivery to the external record store failed."""


class NotificationError(TrackerError):
    """Sending a session notification failed."""


class ConfigError(TrackerError):
    """Configuration is missing or invalid for the requested operation."""
