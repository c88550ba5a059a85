"""Tests for story linking and label filtering.

Linking is a pure function, so these tests are plain assertions with no
mocking.

Run with: pytest tests/test_linker.py -v
"""

from __future__ import annotations

import re

import pytest

from release_helper.linker import (
    STORY_ID_RE,
    StoryLabelFilter,
    link_commits,
    parse_story_id,
)
from release_helper.schemas import Label, Story, UnreleasedCommit


def _commit(sha: str, message: str | None) -> UnreleasedCommit:
    return UnreleasedCommit(id=sha * 40, message=message)


def _story(story_id: int, *labels: str) -> Story:
    return Story(id=story_id, labels=[Label(name=name) for name in labels])


@pytest.fixture
def commits_by_project() -> dict[str, list[UnreleasedCommit]]:
    return {
        "backend": [
            _commit("a", "[sc-42] fix bug"),
            _commit("b", "random fix"),
            _commit("c", "sc-42 follow-up [sc-42]"),
            _commit("d", None),
        ],
        "frontend": [
            _commit("e", "Closes ch99"),
            _commit("f", "feature/sc-42: wire the button"),
            _commit("1", "story/7: update"),
        ],
    }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestParseStoryId:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("[sc-42] fix bug", 42),
            ("Closes ch99", 99),
            ("story/7: update", 7),
            ("[ch12] legacy prefix", 12),
            ("Merge branch 'feature/sc-1234-login'", 1234),
            ("See https://app.shortcut.com/acme/story/321/some-title", 321),
            ("fix typo\n\nRefs [sc-8]", 8),
            ("[SC-77] shouting", 77),
        ],
    )
    def test_recognized_forms(self, message: str, expected: int) -> None:
        assert parse_story_id(message) == expected

    @pytest.mark.parametrize(
        "message",
        [
            "random fix",
            "",
            None,
            "reach100 percent",
            "bump version to 2.0",
            "[sc-] missing digits",
            "[sc-0] zero is not a story",
        ],
    )
    def test_no_match(self, message: str | None) -> None:
        assert parse_story_id(message) is None

    def test_first_occurrence_wins(self) -> None:
        assert parse_story_id("[sc-3] revert [sc-4]") == 3

    def test_custom_pattern(self) -> None:
        anchored = re.compile(r"^\[(sc-)(\d+)\]")
        assert parse_story_id("[sc-5] add", anchored) == 5
        assert parse_story_id("add [sc-5]", anchored) is None

    def test_default_pattern_has_single_group(self) -> None:
        assert STORY_ID_RE.groups == 1


# ---------------------------------------------------------------------------
# Partition
# ---------------------------------------------------------------------------


class TestLinkCommits:
    def test_groups_by_story_then_project(self, commits_by_project) -> None:
        linked = link_commits(commits_by_project)

        assert sorted(linked.story_commits) == [7, 42, 99]
        assert [c.id[0] for c in linked.story_commits[42]["backend"]] == ["a", "c"]
        assert [c.id[0] for c in linked.story_commits[42]["frontend"]] == ["f"]
        assert [c.id[0] for c in linked.unparsed_commits["backend"]] == ["b", "d"]
        assert "frontend" not in linked.unparsed_commits

    def test_partition_is_exhaustive_and_disjoint(self, commits_by_project) -> None:
        linked = link_commits(commits_by_project, excluded_ids={99})

        placed = [
            commit.id
            for projects in linked.story_commits.values()
            for commits in projects.values()
            for commit in commits
        ] + [commit.id for commits in linked.unparsed_commits.values() for commit in commits]
        inputs = [commit.id for commits in commits_by_project.values() for commit in commits]

        assert len(placed) == len(inputs)
        assert sorted(placed) == sorted(inputs)
        assert len(set(placed)) == len(placed)

    def test_excluded_id_is_unparsed(self, commits_by_project) -> None:
        linked = link_commits(commits_by_project, excluded_ids={42})

        assert 42 not in linked.story_commits
        assert [c.id[0] for c in linked.unparsed_commits["backend"]] == ["a", "b", "c", "d"]
        assert [c.id[0] for c in linked.unparsed_commits["frontend"]] == ["f"]

    def test_idempotent(self, commits_by_project) -> None:
        first = link_commits(commits_by_project, excluded_ids={7})
        second = link_commits(commits_by_project, excluded_ids={7})

        assert first == second

    def test_empty_input(self) -> None:
        linked = link_commits({})

        assert linked.story_commits == {}
        assert linked.unparsed_commits == {}
        assert linked.story_ids == []

    def test_two_project_scenario(self) -> None:
        commit = _commit("c", "[sc-5] add feature")

        linked = link_commits({"project": [commit], "other": []})

        assert linked.story_commits == {5: {"project": [commit]}}
        assert linked.unparsed_commits == {}


# ---------------------------------------------------------------------------
# Label filter
# ---------------------------------------------------------------------------


class TestStoryLabelFilter:
    def test_excluded_label_rejects_even_if_included_match(self) -> None:
        label_filter = StoryLabelFilter(excluded_labels={"beta"}, included_labels={"urgent"})

        assert label_filter.accepts(_story(1, "urgent", "beta")) is False

    def test_empty_filter_keeps_unlabelled_story(self) -> None:
        label_filter = StoryLabelFilter()
        story = _story(1)

        assert label_filter.is_empty()
        assert label_filter.accepts(story)
        assert label_filter.apply([story]) == [story]

    def test_all_included_labels_required(self) -> None:
        label_filter = StoryLabelFilter(included_labels={"backend", "release-notes"})

        assert label_filter.accepts(_story(1, "backend", "release-notes", "extra"))
        assert not label_filter.accepts(_story(2, "backend"))
        assert not label_filter.accepts(_story(3))

    def test_excluded_only(self) -> None:
        label_filter = StoryLabelFilter(excluded_labels=["internal"])
        stories = [_story(1, "internal"), _story(2, "customer"), _story(3)]

        assert [s.id for s in label_filter.apply(stories)] == [2, 3]
