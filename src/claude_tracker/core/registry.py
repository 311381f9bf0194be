"""Cross-process registry of active sessions, keyed by project path.

Independently launched tracker processes share one JSON file. Every write
rewrites the whole file through a temp-file-and-rename, so readers never
see a partial document. Read-modify-write is not isolated between
processes: two instances registering at the same moment can lose one
update. Writes happen at human pace, so no file lock is taken.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from claude_tracker.errors import NoActiveSessionForPathError
from claude_tracker.models.registry import RegistryEntry

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "active-sessions.json"

PathLike = Union[str, Path]


def _key(project_path: PathLike) -> str:
    return str(Path(project_path).resolve())


class SessionRegistry(ABC):
    """Mapping of project path to the session and process that own it."""

    @abstractmethod
    def _read(self) -> Dict[str, RegistryEntry]:
        """Load the full mapping."""

    @abstractmethod
    def _write(self, entries: Dict[str, RegistryEntry]) -> None:
        """Replace the full mapping."""

    def entries(self) -> Dict[str, RegistryEntry]:
        return self._read()

    def get_entry(self, project_path: PathLike) -> Optional[RegistryEntry]:
        return self._read().get(_key(project_path))

    def register(self, project_path: PathLike, session_id: str, pid: int) -> None:
        """Insert or overwrite the entry for a project."""
        entries = self._read()
        entries[_key(project_path)] = RegistryEntry(session_id=session_id, pid=pid)
        self._write(entries)

    def unregister(self, project_path: PathLike) -> None:
        """Remove the entry for a project, if present."""
        entries = self._read()
        if entries.pop(_key(project_path), None) is not None:
            self._write(entries)

    def set_note(self, project_path: PathLike, note: str) -> None:
        """Attach a note to the active session for a project.

        Raises:
            NoActiveSessionForPathError: No session is registered for the path.
        """
        entries = self._read()
        key = _key(project_path)
        entry = entries.get(key)
        if entry is None:
            raise NoActiveSessionForPathError(key)
        entries[key] = entry.model_copy(update={"note": note})
        self._write(entries)

    def get_note(self, project_path: PathLike) -> Optional[str]:
        entry = self.get_entry(project_path)
        return entry.note if entry else None


class JsonFileRegistry(SessionRegistry):
    """Registry stored in a JSON file shared by all tracker processes."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, RegistryEntry]:
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable registry %s: %s", self.path, e)
            return {}

        if not isinstance(raw, dict):
            return {}

        entries: Dict[str, RegistryEntry] = {}
        for project_path, data in raw.items():
            try:
                entries[project_path] = RegistryEntry.model_validate(data)
            except ValidationError:
                logger.debug("Skipping malformed registry entry for %s", project_path)
        return entries

    def _write(self, entries: Dict[str, RegistryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            project_path: entry.model_dump(by_alias=True)
            for project_path, entry in entries.items()
        }

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class InMemoryRegistry(SessionRegistry):
    """Registry held in memory, for tests and single-process use."""

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}

    def _read(self) -> Dict[str, RegistryEntry]:
        return dict(self._entries)

    def _write(self, entries: Dict[str, RegistryEntry]) -> None:
        self._entries = dict(entries)
