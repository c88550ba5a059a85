"""Final composition of the release content."""

from __future__ import annotations

from collections.abc import Sequence

from release_helper.schemas import CommitsByProject, Epic, ReleaseContent, Story


def assemble_release(
    stories: Sequence[Story],
    epics: Sequence[Epic],
    unparsed_commits: CommitsByProject,
) -> ReleaseContent:
    """Pair fetched stories and epics with the commits no story claimed.

    Stories and epics are expected already sorted by id; unparsed commits
    are carried through unchanged.
    """
    return ReleaseContent(
        stories=list(stories),
        epics=list(epics),
        unparsed_commits=unparsed_commits,
    )
