"""Pydantic models for the data flowing through a release run.

The chain is:
- RepositoryConfiguration (one per project, from config) feeds history resolution
- UnreleasedCommit lists, keyed by project name, feed story linking
- LinkedCommits feed the Shortcut fetcher
- ReleaseContent (and the Release document wrapping it) goes to the renderer

Key design decisions:
- Story, Epic and Label keep every field the Shortcut API sends
  (``extra="allow"``); only the fields the pipeline reads are declared.
- Commit ids are plain hex strings so nothing downstream touches git objects.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

StoryId = int
EpicId = int


# ---------------------------------------------------------------------------
# Git side
# ---------------------------------------------------------------------------


class RepositoryConfiguration(BaseModel):
    """Where a project lives and which references delimit the release.

    Attributes:
        location: Path to the repository on disk
        release_branch: Branch, tag or commit id which has been released
        next_branch: Branch, tag or commit id which has not been released
    """

    model_config = ConfigDict(frozen=True)

    location: Path = Field(..., description="Path to the repository on disk")
    release_branch: str = Field(..., min_length=1, description="Released reference")
    next_branch: str = Field(..., min_length=1, description="Candidate reference")


class UnreleasedCommit(BaseModel):
    """A commit only present in ``next_branch``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Hex commit id")
    message: str | None = Field(None, description="Full commit message")


CommitsByProject = dict[str, list[UnreleasedCommit]]


class LinkedCommits(BaseModel):
    """Commits partitioned by the story they reference.

    Every input commit lands in exactly one place: under one story id, or
    in ``unparsed_commits``.
    """

    story_commits: dict[StoryId, CommitsByProject] = Field(default_factory=dict)
    unparsed_commits: CommitsByProject = Field(default_factory=dict)

    @property
    def story_ids(self) -> list[StoryId]:
        return sorted(self.story_commits)


# ---------------------------------------------------------------------------
# Shortcut side
# ---------------------------------------------------------------------------


class Label(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class Story(BaseModel):
    """A Shortcut story. Unknown API fields are passed through untouched."""

    model_config = ConfigDict(extra="allow")

    id: StoryId
    name: str = ""
    story_type: str = ""
    epic_id: EpicId | None = None
    labels: list[Label] = Field(default_factory=list)

    @property
    def label_names(self) -> set[str]:
        return {label.name for label in self.labels}


class EpicStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    num_stories_total: int = 0
    num_stories_done: int = 0


class Epic(BaseModel):
    """A Shortcut epic, the parent grouping of stories."""

    model_config = ConfigDict(extra="allow")

    id: EpicId
    name: str = ""
    stats: EpicStats = Field(default_factory=EpicStats)
    labels: list[Label] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class ReleaseContent(BaseModel):
    """Everything fetched for a release, in deterministic order.

    Attributes:
        stories: Stories sorted by id
        epics: Epics of those stories, sorted by id
        unparsed_commits: Commits with no recognizable story reference
    """

    stories: list[Story] = Field(default_factory=list)
    epics: list[Epic] = Field(default_factory=list)
    unparsed_commits: CommitsByProject = Field(default_factory=dict)


class Release(BaseModel):
    """The document handed to the renderer."""

    name: str | None = None
    version: str | None = None
    description: str | None = None
    stories: list[Story] = Field(default_factory=list)
    epics: list[Epic] = Field(default_factory=list)
    unparsed_commits: CommitsByProject = Field(default_factory=dict)

    @classmethod
    def from_content(
        cls,
        content: ReleaseContent,
        name: str | None = None,
        version: str | None = None,
        description: str | None = None,
    ) -> Release:
        return cls(
            name=name,
            version=version,
            description=description,
            stories=content.stories,
            epics=content.epics,
            unparsed_commits=content.unparsed_commits,
        )
