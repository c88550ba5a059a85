"""Shared fixtures: throwaway git repositories built with GitPython."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest
from git import Actor, Commit, Repo

AUTHOR = Actor("Test Author", "author@example.com")


class RepoBuilder:
    """Creates commits with explicit parents, without touching HEAD."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.repo = Repo.init(path)
        with self.repo.config_writer() as writer:
            writer.set_value("user", "name", AUTHOR.name)
            writer.set_value("user", "email", AUTHOR.email)
        self._counter = 0

    def commit(self, message: str, parents: Sequence[Commit] = ()) -> Commit:
        self._counter += 1
        file_path = self.path / f"file_{self._counter}.txt"
        file_path.write_text(message, encoding="utf-8")
        self.repo.index.add([str(file_path)])
        return self.repo.index.commit(
            message,
            parent_commits=list(parents),
            head=False,
            author=AUTHOR,
            committer=AUTHOR,
        )

    def branch(self, name: str, commit: Commit) -> None:
        self.repo.create_head(name, commit, force=True)

    def tag(self, name: str, commit: Commit, message: str | None = None) -> None:
        self.repo.create_tag(name, ref=commit, message=message)


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    return RepoBuilder(tmp_path / "repo")


@pytest.fixture
def make_repo(tmp_path: Path):
    """Factory for several independent repositories in one test."""

    def _make(name: str) -> RepoBuilder:
        return RepoBuilder(tmp_path / name)

    return _make
