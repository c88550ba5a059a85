"""Query filters exposed to release note templates.

Each filter takes value trees (see ``release_helper.values``) and returns
value trees. ``split_*`` filters return ``[matched, unmatched]``.

Template usage (any engine with named filters):

    {% set done, in_progress = epics | split_by_epic_stories_state %}
    {% set bugs, others = stories | split_by_label("bug") %}
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from release_helper.errors import FilterError
from release_helper.values import Value, as_sequence, get_attr

ALL_DONE = "all_done"
NOT_ALL_DONE = "not_all_done"


def _has_label(item: Value, label_name: str) -> bool:
    for label in as_sequence(get_attr(item, "labels")):
        if isinstance(label, dict) and label.get("name") == label_name:
            return True
    return False


def _all_stories_done(epic: Value) -> bool:
    stats = get_attr(epic, "stats")
    return get_attr(stats, "num_stories_total") == get_attr(stats, "num_stories_done")


def split_by_label(items: Value, label: Value) -> list[list[Value]]:
    """Split stories or epics on whether they carry ``label``."""
    if not isinstance(label, str):
        raise FilterError("split_by_label expects a string label")
    matched: list[Value] = []
    unmatched: list[Value] = []
    for item in as_sequence(items):
        (matched if _has_label(item, label) else unmatched).append(item)
    return [matched, unmatched]


def split_by_epic(stories: Value, epic_id: Value) -> list[list[Value]]:
    """Split stories on whether they belong to the epic ``epic_id``."""
    if isinstance(epic_id, bool) or not isinstance(epic_id, int):
        raise FilterError("split_by_epic expects a numeric epic id")
    matched: list[Value] = []
    unmatched: list[Value] = []
    for story in as_sequence(stories):
        (matched if get_attr(story, "epic_id") == epic_id else unmatched).append(story)
    return [matched, unmatched]


def split_by_epic_stories_state(epics: Value) -> list[list[Value]]:
    """Split epics into those with all stories done and the rest."""
    done: list[Value] = []
    not_done: list[Value] = []
    for epic in as_sequence(epics):
        (done if _all_stories_done(epic) else not_done).append(epic)
    return [done, not_done]


def epic_stories_state(epics: Value, state: Value) -> list[Value]:
    """Keep the epics whose stories are all done, or not all done."""
    if state == ALL_DONE:
        return split_by_epic_stories_state(epics)[0]
    if state == NOT_ALL_DONE:
        return split_by_epic_stories_state(epics)[1]
    raise FilterError(f"expected '{ALL_DONE}' or '{NOT_ALL_DONE}', got {state!r}")


def today(fmt: str | None = None) -> str:
    """Today's UTC date, ``YYYY-MM-DD`` unless a strftime format is given."""
    return datetime.now(UTC).strftime(fmt or "%Y-%m-%d")


FILTERS: dict[str, Callable[..., Any]] = {
    "split_by_label": split_by_label,
    "split_by_epic": split_by_epic,
    "split_by_epic_stories_state": split_by_epic_stories_state,
    "epic_stories_state": epic_stories_state,
}

FUNCTIONS: dict[str, Callable[..., Any]] = {
    "today": today,
}
