"""Gather git and pull-request context for a project."""

import json
import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import git
from git import Repo

from claude_tracker.models.git_context import CommitInfo, GitContext, PRInfo
from claude_tracker.models.session import NO_BRANCH

logger = logging.getLogger(__name__)

MAX_COMMITS_WITHOUT_SINCE = 10
MAX_OPEN_PRS = 5


class GitContextProvider:
    """Read-only queries against a project's git repository.

    Nothing here raises for a missing repository, missing ``gh`` CLI or a
    failing git command; the context degrades to whatever could be read.
    """

    def __init__(self, gh_command: str = "gh", timeout: float = 10.0):
        self.gh_command = gh_command
        self.timeout = timeout

    def _open_repo(self, project_path: Path) -> Optional[Repo]:
        try:
            return Repo(project_path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            return None

    def is_repo(self, project_path: Path) -> bool:
        repo = self._open_repo(project_path)
        if repo is None:
            return False
        repo.close()
        return True

    def get_branch(self, project_path: Path) -> str:
        repo = self._open_repo(project_path)
        if repo is None:
            return NO_BRANCH
        with repo:
            return self._branch_name(repo)

    def get_context(
        self, project_path: Path, since: Optional[datetime] = None
    ) -> GitContext:
        """Branch, commits since ``since``, open PRs and uncommitted files."""
        repo = self._open_repo(project_path)
        if repo is None:
            return GitContext(branch=NO_BRANCH)

        with repo:
            return GitContext(
                branch=self._branch_name(repo),
                recent_commits=self._recent_commits(repo, since),
                open_prs=self._open_prs(project_path),
                changed_files=self._changed_files(repo),
            )

    def _branch_name(self, repo: Repo) -> str:
        try:
            return repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return "HEAD"
        except Exception as e:
            logger.debug("Could not read branch: %s", e)
            return "unknown"

    def _recent_commits(
        self, repo: Repo, since: Optional[datetime]
    ) -> List[CommitInfo]:
        kwargs = {"no_merges": True}
        if since is not None:
            kwargs["since"] = since.isoformat()
        else:
            kwargs["max_count"] = MAX_COMMITS_WITHOUT_SINCE

        try:
            return [
                CommitInfo(
                    hash=commit.hexsha,
                    message=commit.summary,
                    timestamp=commit.committed_datetime.isoformat(),
                )
                for commit in repo.iter_commits("HEAD", **kwargs)
            ]
        except (ValueError, git.exc.GitCommandError) as e:
            # Empty repository or unreadable history
            logger.debug("Could not read commits: %s", e)
            return []

    def _changed_files(self, repo: Repo) -> List[str]:
        files: List[str] = []
        seen = set()

        def add(paths) -> None:
            for path in paths:
                if path and path not in seen:
                    seen.add(path)
                    files.append(path)

        try:
            add(item.a_path or item.b_path for item in repo.index.diff("HEAD"))
        except (ValueError, git.exc.BadName, git.exc.GitCommandError):
            # No HEAD yet: everything in the index is staged
            add(path for path, _stage in repo.index.entries.keys())
        try:
            add(item.a_path or item.b_path for item in repo.index.diff(None))
            add(repo.untracked_files)
        except git.exc.GitCommandError as e:
            logger.debug("Could not read working tree status: %s", e)

        return files

    def _open_prs(self, project_path: Path) -> List[PRInfo]:
        try:
            result = subprocess.run(  # noqa: S603
                [
                    self.gh_command,
                    "pr",
                    "list",
                    "--json",
                    "number,title,url,headRefName",
                    "--limit",
                    str(MAX_OPEN_PRS),
                ],
                cwd=str(project_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired):
            logger.debug("gh CLI not available")
            return []

        if result.returncode != 0 or not result.stdout.strip():
            logger.debug("gh pr list returned nothing: %s", result.stderr.strip())
            return []

        try:
            return [
                PRInfo(
                    number=pr["number"],
                    title=pr["title"],
                    url=pr["url"],
                    branch=pr["headRefName"],
                )
                for pr in json.loads(result.stdout)
            ]
        except (ValueError, KeyError, TypeError) as e:
            logger.debug("Could not parse gh output: %s", e)
            return []
