"""Structured error catalog.

Every error carries a code, a human message, and a suggested fix, so the
CLI can report failures precisely without re-running with verbose logging.
Aggregate errors (``HistoryResolutionError``, ``FetchRoundError``) keep
each individual failure in ``errors``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class ReleaseHelperError(Exception):
    """Base error with structured code + suggestion."""

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(ReleaseHelperError):
    def __init__(self, message: str, suggestion: str = ""):
        super().__init__(
            code="CONFIG_INVALID",
            message=message,
            suggestion=suggestion or "Check config.yaml against the documented layout.",
        )


# ---------------------------------------------------------------------------
# History resolution
# ---------------------------------------------------------------------------


class RepositoryOpenError(ReleaseHelperError):
    def __init__(self, project: str, location: str, cause: Exception):
        self.project = project
        self.cause = cause
        super().__init__(
            code="REPOSITORY_OPEN_FAILED",
            message=f"Could not open repository for {project} at {location}: {cause}",
            suggestion="Check the 'location' of this repository in the configuration.",
            detail={"project": project, "location": location},
        )


class ReferenceNotFoundError(ReleaseHelperError):
    def __init__(self, project: str, reference: str):
        self.project = project
        self.reference = reference
        super().__init__(
            code="REFERENCE_NOT_FOUND",
            message=f"Reference '{reference}' not found in {project} (neither a ref nor a commit id)",
            suggestion="Fetch the branch locally or use a full commit id.",
            detail={"project": project, "reference": reference},
        )


class NoCommonAncestorError(ReleaseHelperError):
    def __init__(self, project: str, release_ref: str, next_ref: str):
        self.project = project
        super().__init__(
            code="NO_COMMON_ANCESTOR",
            message=f"'{release_ref}' and '{next_ref}' share no history in {project}",
            suggestion="Both branches must descend from a common commit.",
            detail={"project": project, "release_branch": release_ref, "next_branch": next_ref},
        )


class HistoryResolutionError(ReleaseHelperError):
    def __init__(self, errors: Sequence[Exception]):
        self.errors = list(errors)
        super().__init__(
            code="HISTORY_RESOLUTION_FAILED",
            message=f"History resolution failed for {len(self.errors)} project(s): "
            + "; ".join(str(e) for e in self.errors),
            detail=[str(e) for e in self.errors],
        )


# ---------------------------------------------------------------------------
# Shortcut fetches
# ---------------------------------------------------------------------------


class StoryFetchError(ReleaseHelperError):
    def __init__(self, story_id: int, cause: BaseException):
        self.identifier = story_id
        self.cause = cause
        super().__init__(
            code="STORY_FETCH_FAILED",
            message=f"Error while retrieving story {story_id}: {cause!r}",
            detail={"story_id": story_id},
        )


class EpicFetchError(ReleaseHelperError):
    def __init__(self, epic_id: int, cause: BaseException):
        self.identifier = epic_id
        self.cause = cause
        super().__init__(
            code="EPIC_FETCH_FAILED",
            message=f"Error while retrieving epic {epic_id}: {cause!r}",
            detail={"epic_id": epic_id},
        )


class FetchRoundError(ReleaseHelperError):
    """Every failure of one fetch round. No partial result accompanies it."""

    def __init__(self, entity: str, errors: Sequence[StoryFetchError | EpicFetchError]):
        self.entity = entity
        self.errors = list(errors)
        super().__init__(
            code="FETCH_ROUND_FAILED",
            message=f"Got {len(self.errors)} error(s) while fetching {entity}: "
            + "; ".join(e.message for e in self.errors),
            suggestion="Check the API token and the listed ids, then run again.",
            detail=[e.identifier for e in self.errors],
        )

    @property
    def failed_ids(self) -> list[int]:
        return [e.identifier for e in self.errors]


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


class FilterError(ReleaseHelperError):
    def __init__(self, message: str):
        super().__init__(code="FILTER_FAILED", message=message)
