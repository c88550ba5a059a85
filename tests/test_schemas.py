"""Tests for Pydantic schemas.

These tests verify that the models:
- Accept the payloads Shortcut sends, keeping unknown fields
- Reject invalid configuration
- Stay immutable where the pipeline relies on it

Run with: pytest tests/test_schemas.py -v
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from release_helper.schemas import (
    Epic,
    Release,
    ReleaseContent,
    RepositoryConfiguration,
    Story,
    UnreleasedCommit,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_story() -> dict:
    """A story as returned by GET /stories/{id}, trimmed."""
    return {
        "id": 42,
        "name": "Fix login redirect",
        "story_type": "bug",
        "epic_id": 7,
        "labels": [{"id": 1, "name": "urgent", "color": "#ff0000"}],
        "app_url": "https://app.shortcut.com/acme/story/42",
        "completed": True,
    }


@pytest.fixture
def sample_epic() -> dict:
    """An epic as returned by GET /epics/{id}, trimmed."""
    return {
        "id": 7,
        "name": "Authentication",
        "stats": {"num_stories_total": 4, "num_stories_done": 3, "num_points": 8},
        "labels": [],
        "state": "in progress",
    }


# ---------------------------------------------------------------------------
# Git side
# ---------------------------------------------------------------------------


class TestRepositoryConfiguration:
    def test_valid(self) -> None:
        config = RepositoryConfiguration(
            location="../project", release_branch="master", next_branch="next"
        )
        assert config.location == Path("../project")

    def test_empty_reference_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RepositoryConfiguration(location=".", release_branch="", next_branch="next")

    def test_frozen(self) -> None:
        config = RepositoryConfiguration(location=".", release_branch="a", next_branch="b")
        with pytest.raises(ValidationError):
            config.release_branch = "c"


class TestUnreleasedCommit:
    def test_message_optional(self) -> None:
        commit = UnreleasedCommit(id="a" * 40)
        assert commit.message is None

    def test_hashable_and_comparable(self) -> None:
        first = UnreleasedCommit(id="a" * 40, message="x")
        second = UnreleasedCommit(id="a" * 40, message="x")
        assert first == second
        assert len({first, second}) == 1


# ---------------------------------------------------------------------------
# Shortcut side
# ---------------------------------------------------------------------------


class TestStory:
    def test_parses_api_payload(self, sample_story: dict) -> None:
        story = Story.model_validate(sample_story)
        assert story.id == 42
        assert story.epic_id == 7
        assert story.label_names == {"urgent"}

    def test_unknown_fields_passed_through(self, sample_story: dict) -> None:
        dumped = Story.model_validate(sample_story).model_dump()
        assert dumped["app_url"] == sample_story["app_url"]
        assert dumped["completed"] is True
        assert dumped["labels"][0]["color"] == "#ff0000"

    def test_defaults(self) -> None:
        story = Story(id=1)
        assert story.epic_id is None
        assert story.labels == []
        assert story.label_names == set()

    def test_requires_id(self) -> None:
        with pytest.raises(ValidationError):
            Story.model_validate({"name": "no id"})


class TestEpic:
    def test_parses_stats(self, sample_epic: dict) -> None:
        epic = Epic.model_validate(sample_epic)
        assert epic.stats.num_stories_total == 4
        assert epic.stats.num_stories_done == 3
        assert epic.model_dump()["stats"]["num_points"] == 8

    def test_missing_stats_default_to_zero(self) -> None:
        epic = Epic(id=1)
        assert epic.stats.num_stories_total == 0


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class TestRelease:
    def test_from_content(self, sample_story: dict, sample_epic: dict) -> None:
        content = ReleaseContent(
            stories=[Story.model_validate(sample_story)],
            epics=[Epic.model_validate(sample_epic)],
            unparsed_commits={"dev": [UnreleasedCommit(id="b" * 40, message="wip")]},
        )

        release = Release.from_content(content, name="Super release", version="3.4.0")

        assert release.name == "Super release"
        assert release.version == "3.4.0"
        assert release.description is None
        assert release.stories == content.stories
        assert release.unparsed_commits == content.unparsed_commits

    def test_json_roundtrip_keeps_extra_fields(self, sample_story: dict) -> None:
        release = Release(stories=[Story.model_validate(sample_story)])
        restored = Release.model_validate_json(release.model_dump_json())
        assert restored.stories[0].model_dump()["app_url"] == sample_story["app_url"]
