"""Git history resolution for unreleased commits.

For each configured project this module opens the repository, resolves the
release and next references, and lists the commits reachable from next but
not from their merge base with release. Merge commits are skipped: they
never stand for a single piece of work.

Design notes:
- Uses GitPython; the repository is only ever read
- GitPython calls block, so ``resolve_projects`` runs each project on a
  worker thread and joins them all
- References are looked up the way git does for short names, then as a
  commit id
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Mapping

from git import Commit, Repo
from git.exc import BadName, BadObject, InvalidGitRepositoryError, NoSuchPathError

from release_helper.errors import (
    HistoryResolutionError,
    NoCommonAncestorError,
    ReferenceNotFoundError,
    RepositoryOpenError,
)
from release_helper.logging_config import get_logger
from release_helper.schemas import CommitsByProject, RepositoryConfiguration, UnreleasedCommit

logger = get_logger(__name__)

_HEX_RE = re.compile(r"[0-9a-fA-F]{4,40}")

# Same order as git's short name lookup (see gitrevisions(7)).
_REF_PATTERNS = (
    "{}",
    "refs/{}",
    "refs/tags/{}",
    "refs/heads/{}",
    "refs/remotes/{}",
    "refs/remotes/{}/HEAD",
)


class GitRepository:
    """Read-only view of one project's repository.

    Usage:
        repo = GitRepository("dev", repo_config)
        commits = repo.find_unreleased_commits()
    """

    def __init__(self, name: str, configuration: RepositoryConfiguration) -> None:
        """Open the repository.

        Args:
            name: Project name, used in errors and logs
            configuration: Location and references of the project

        Raises:
            RepositoryOpenError: If the location is missing or not a git repository
        """
        self.name = name
        self.release_branch = configuration.release_branch
        self.next_branch = configuration.next_branch
        try:
            self._repo = Repo(configuration.location)
        except (NoSuchPathError, InvalidGitRepositoryError) as exc:
            raise RepositoryOpenError(name, str(configuration.location), exc) from exc

    def close(self) -> None:
        self._repo.close()

    def find_commit(self, reference: str) -> Commit:
        """Resolve a branch, tag, or commit id to a commit.

        Raises:
            ReferenceNotFoundError: If the name is neither a ref nor a commit id
        """
        refs = {ref.path: ref for ref in self._repo.refs}
        for pattern in _REF_PATTERNS:
            ref = refs.get(pattern.format(reference))
            if ref is not None:
                return ref.commit
        if reference == "HEAD" and self._repo.head.is_valid():
            return self._repo.head.commit

        if _HEX_RE.fullmatch(reference):
            try:
                return self._repo.commit(reference)
            except (BadName, BadObject, ValueError):
                pass
        raise ReferenceNotFoundError(self.name, reference)

    def find_unreleased_commits(self) -> list[UnreleasedCommit]:
        """Return the non-merge commits of next that release does not have.

        The walk covers ``merge_base..next_head`` in git's default order
        (newest first).

        Raises:
            ReferenceNotFoundError: If either reference cannot be resolved
            NoCommonAncestorError: If the two references share no history
        """
        release_head = self.find_commit(self.release_branch)
        next_head = self.find_commit(self.next_branch)
        logger.debug("next_head_resolved", repo=self.name, commit=next_head.hexsha)

        merge_bases = self._repo.merge_base(release_head, next_head)
        if not merge_bases:
            raise NoCommonAncestorError(self.name, self.release_branch, self.next_branch)
        merge_base = merge_bases[0]
        logger.debug("merge_base_found", repo=self.name, commit=merge_base.hexsha)

        unreleased: list[UnreleasedCommit] = []
        for commit in self._repo.iter_commits(f"{merge_base.hexsha}..{next_head.hexsha}"):
            if len(commit.parents) > 1:
                logger.debug("merge_commit_skipped", repo=self.name, commit=commit.hexsha)
                continue
            unreleased.append(UnreleasedCommit(id=commit.hexsha, message=commit.message or None))
        return unreleased


def find_unreleased_commits(
    name: str,
    configuration: RepositoryConfiguration,
) -> list[UnreleasedCommit]:
    """Open one project's repository and list its unreleased commits."""
    log = logger.bind(repo=name)
    log.info(
        "history_resolution_started",
        release_branch=configuration.release_branch,
        next_branch=configuration.next_branch,
    )
    started = time.perf_counter()
    repo = GitRepository(name, configuration)
    try:
        commits = repo.find_unreleased_commits()
    finally:
        repo.close()
    log.info(
        "history_resolved",
        commit_count=len(commits),
        duration_ms=round((time.perf_counter() - started) * 1000),
    )
    return commits


async def resolve_projects(
    repositories: Mapping[str, RepositoryConfiguration],
) -> CommitsByProject:
    """Resolve every project's unreleased commits concurrently.

    Each project runs on its own worker thread. All of them run to
    completion; failures are then reported together.

    Args:
        repositories: Project name -> repository configuration

    Returns:
        Unreleased commits keyed by project name

    Raises:
        HistoryResolutionError: If one or more projects failed
    """
    names = list(repositories)
    results = await asyncio.gather(
        *(
            asyncio.to_thread(find_unreleased_commits, name, repositories[name])
            for name in names
        ),
        return_exceptions=True,
    )

    commits_by_project: CommitsByProject = {}
    errors: list[Exception] = []
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.error("history_resolution_failed", repo=name, error=str(result))
            errors.append(result)
        elif isinstance(result, BaseException):
            raise result
        else:
            commits_by_project[name] = result

    if errors:
        raise HistoryResolutionError(errors)
    return commits_by_project
