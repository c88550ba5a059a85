"""Tests for the structured error catalog."""

from __future__ import annotations

import httpx

from release_helper.errors import (
    ConfigError,
    EpicFetchError,
    FetchRoundError,
    HistoryResolutionError,
    NoCommonAncestorError,
    ReferenceNotFoundError,
    ReleaseHelperError,
    RepositoryOpenError,
    StoryFetchError,
)


class TestErrorCatalog:
    def test_base_error(self) -> None:
        e = ReleaseHelperError(code="TEST", message="test msg", suggestion="try this")
        d = e.to_dict()
        assert d["error_code"] == "TEST"
        assert d["message"] == "test msg"
        assert d["suggestion"] == "try this"
        assert "detail" not in d

    def test_config_error(self) -> None:
        e = ConfigError("bad config")
        assert e.code == "CONFIG_INVALID"
        assert e.suggestion

    def test_history_errors_carry_project(self) -> None:
        open_error = RepositoryOpenError("dev", "/nowhere", OSError("missing"))
        ref_error = ReferenceNotFoundError("dev", "next")
        base_error = NoCommonAncestorError("dev", "master", "next")

        assert open_error.code == "REPOSITORY_OPEN_FAILED"
        assert "/nowhere" in open_error.message
        assert ref_error.to_dict()["detail"] == {"project": "dev", "reference": "next"}
        assert base_error.code == "NO_COMMON_ANCESTOR"

    def test_history_aggregate(self) -> None:
        errors = [ReferenceNotFoundError("a", "x"), ReferenceNotFoundError("b", "y")]
        e = HistoryResolutionError(errors)

        assert e.errors == errors
        assert "'x'" in e.message and "'y'" in e.message

    def test_fetch_round_error(self) -> None:
        cause = httpx.ConnectError("connection refused")
        e = FetchRoundError("stories", [StoryFetchError(4, cause)])

        assert e.code == "FETCH_ROUND_FAILED"
        assert e.failed_ids == [4]
        assert "story 4" in e.message
        assert "connection refused" in e.message
        assert e.to_dict()["detail"] == [4]

    def test_epic_fetch_error(self) -> None:
        e = EpicFetchError(9, LookupError("gone"))
        assert e.identifier == 9
        assert e.code == "EPIC_FETCH_FAILED"
