"""Version-control context gathered at the end of a session."""

from typing import List, Optional

from pydantic import BaseModel


class CommitInfo(BaseModel):
    """A commit made in the project during the session."""

    hash: str
    message: str
    timestamp: str = ""


class PRInfo(BaseModel):
    """An open pull request for the project."""

    number: int
    title: str
    url: str
    branch: str


class GitContext(BaseModel):
    """Branch, commits, pull requests and changed files for a project."""

    branch: str
    recent_commits: List[CommitInfo] = []
    open_prs: List[PRInfo] = []
    changed_files: List[str] = []

    def current_pr(self) -> Optional[PRInfo]:
        """Return the open pull request for the current branch, if any."""
        return next((pr for pr in self.open_prs if pr.branch == self.branch), None)
