"""Link unreleased commits to Shortcut stories.

A commit is linked through the first story reference found anywhere in its
message. Recognized forms:

- ``sc-<digits>`` or ``ch<digits>`` as a token of its own: ``[sc-42]``,
  ``feature/sc-42-login``, ``Closes ch99``
- ``story/<digits>`` as a path segment: ``story/7: update``,
  ``https://app.shortcut.com/org/story/7/slug``

Label filtering lives here too, but only runs once stories are fetched since
labels are not known from commit messages.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from release_helper.schemas import (
    CommitsByProject,
    LinkedCommits,
    Story,
    StoryId,
    UnreleasedCommit,
)

STORY_ID_RE = re.compile(r"(?:(?<![\w-])(?:sc-|ch)|story/)(\d+)", re.IGNORECASE)


def parse_story_id(
    message: str | None,
    pattern: re.Pattern[str] = STORY_ID_RE,
) -> StoryId | None:
    """Extract the first story id referenced in a commit message.

    The id is read from the last capture group of ``pattern`` that took
    part in the match, so custom patterns may use extra groups for the
    prefix.

    Args:
        message: The commit message, possibly missing
        pattern: Compiled extraction pattern

    Returns:
        The story id, or None when the message references no story
    """
    if not message:
        return None
    match = pattern.search(message)
    if match is None:
        return None
    digits = next((group for group in reversed(match.groups()) if group), None)
    if digits is None or not digits.isdecimal():
        return None
    story_id = int(digits)
    return story_id if story_id > 0 else None


def link_commits(
    commits_by_project: Mapping[str, Sequence[UnreleasedCommit]],
    excluded_ids: Iterable[StoryId] = (),
    pattern: re.Pattern[str] = STORY_ID_RE,
) -> LinkedCommits:
    """Partition commits into story-linked and unparsed groups.

    Commits referencing an excluded story id are treated as unparsed.
    Per-project commit order is preserved in both groups.

    Args:
        commits_by_project: Unreleased commits keyed by project name
        excluded_ids: Story ids the operator asked to leave out
        pattern: Compiled extraction pattern

    Returns:
        The LinkedCommits partition
    """
    excluded = frozenset(excluded_ids)
    story_commits: dict[StoryId, CommitsByProject] = {}
    unparsed_commits: CommitsByProject = {}

    for project, commits in commits_by_project.items():
        for commit in commits:
            story_id = parse_story_id(commit.message, pattern)
            if story_id is None or story_id in excluded:
                unparsed_commits.setdefault(project, []).append(commit)
            else:
                story_commits.setdefault(story_id, {}).setdefault(project, []).append(commit)

    return LinkedCommits(story_commits=story_commits, unparsed_commits=unparsed_commits)


class StoryLabelFilter:
    """Keeps stories by label.

    A story is kept when none of its labels is excluded and every included
    label is present on it.

    Usage:
        label_filter = StoryLabelFilter(excluded_labels=["internal"])
        stories = label_filter.apply(stories)
    """

    def __init__(
        self,
        excluded_labels: Iterable[str] = (),
        included_labels: Iterable[str] = (),
    ) -> None:
        self.excluded_labels = frozenset(excluded_labels)
        self.included_labels = frozenset(included_labels)

    def __repr__(self) -> str:
        return (
            f"StoryLabelFilter(excluded_labels={sorted(self.excluded_labels)}, "
            f"included_labels={sorted(self.included_labels)})"
        )

    def is_empty(self) -> bool:
        return not self.excluded_labels and not self.included_labels

    def accepts(self, story: Story) -> bool:
        labels = story.label_names
        if labels & self.excluded_labels:
            return False
        return self.included_labels <= labels

    def apply(self, stories: Sequence[Story]) -> list[Story]:
        if self.is_empty():
            return list(stories)
        return [story for story in stories if self.accepts(story)]
