"""Shortcut API client and the rate-limited release fetcher.

Stories linked from commits are fetched from Shortcut's REST API, then the
epics those stories belong to. Both rounds fan out one request per id and
join them all:

- every request first passes a concurrency gate, then the shared rate limiter
- a failing request never cancels its siblings
- if anything failed, the round raises one FetchRoundError listing every
  failed id; a partial list never reaches the caller
- on success, results are deduplicated and sorted by id

Design notes:
- Uses httpx for async HTTP requests, one AsyncClient shared by the run
- Uses a Protocol so the fetcher doesn't depend on the concrete client
  (tests use MockShortcutClient or httpx.MockTransport)
- No retries: transient failures are reported, not masked

Shortcut API docs: https://developer.shortcut.com/api/rest/v3
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from types import TracebackType
from typing import Protocol, TypeVar

import httpx

from release_helper.assembler import assemble_release
from release_helper.errors import EpicFetchError, FetchRoundError, StoryFetchError
from release_helper.linker import StoryLabelFilter
from release_helper.logging_config import get_logger
from release_helper.ratelimit import RateLimiter
from release_helper.schemas import (
    Epic,
    EpicId,
    LinkedCommits,
    ReleaseContent,
    Story,
    StoryId,
)

logger = get_logger(__name__)

T = TypeVar("T", Story, Epic)

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class ShortcutClientProtocol(Protocol):
    """Protocol defining the Shortcut lookups the fetcher needs."""

    async def get_story(self, story_id: StoryId) -> Story:
        """Fetch one story by id."""
        ...

    async def get_epic(self, epic_id: EpicId) -> Epic:
        """Fetch one epic by id."""
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class ShortcutClient:
    """Shortcut REST API client using httpx.

    Usage:
        async with ShortcutClient(api_key="...") as client:
            story = await client.get_story(42)
    """

    BASE_URL = "https://api.app.shortcut.com/api/v3"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Shortcut client.

        Args:
            api_key: Shortcut API token
            base_url: Override of the API root (for tests)
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (for tests)
        """
        self._headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Shortcut-Token": api_key,
        }
        self._base_url = base_url or self.BASE_URL
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ShortcutClient:
        self._get_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str) -> dict:
        resp = await self._get_client().get(path)
        resp.raise_for_status()
        return resp.json()

    async def get_story(self, story_id: StoryId) -> Story:
        """GET /stories/{story_id}.

        Raises:
            httpx.HTTPStatusError: If Shortcut answers with an error status
            pydantic.ValidationError: If the body is not a story
        """
        return Story.model_validate(await self._get(f"/stories/{story_id}"))

    async def get_epic(self, epic_id: EpicId) -> Epic:
        """GET /epics/{epic_id}.

        Raises:
            httpx.HTTPStatusError: If Shortcut answers with an error status
            pydantic.ValidationError: If the body is not an epic
        """
        return Epic.model_validate(await self._get(f"/epics/{epic_id}"))


# ---------------------------------------------------------------------------
# Mock Implementation (for testing)
# ---------------------------------------------------------------------------


class MockShortcutClient:
    """Mock Shortcut client that serves predefined stories and epics.

    Usage:
        client = MockShortcutClient(stories=[{"id": 5, "epic_id": 1}], epics=[{"id": 1}])
        story = await client.get_story(5)
    """

    def __init__(
        self,
        stories: Iterable[Story | dict] = (),
        epics: Iterable[Epic | dict] = (),
    ) -> None:
        self.stories = {s.id: s for s in (Story.model_validate(s) for s in stories)}
        self.epics = {e.id: e for e in (Epic.model_validate(e) for e in epics)}
        self.requested_stories: list[StoryId] = []
        self.requested_epics: list[EpicId] = []

    async def get_story(self, story_id: StoryId) -> Story:
        """Return the predefined story.

        Raises:
            LookupError: If no story with this id was provided
        """
        self.requested_stories.append(story_id)
        await asyncio.sleep(0)
        try:
            return self.stories[story_id]
        except KeyError:
            raise LookupError(f"story {story_id} not found") from None

    async def get_epic(self, epic_id: EpicId) -> Epic:
        """Return the predefined epic.

        Raises:
            LookupError: If no epic with this id was provided
        """
        self.requested_epics.append(epic_id)
        await asyncio.sleep(0)
        try:
            return self.epics[epic_id]
        except KeyError:
            raise LookupError(f"epic {epic_id} not found") from None


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class ReleaseFetcher:
    """Fetches the stories and epics of a release under a shared quota.

    Usage:
        fetcher = ReleaseFetcher(client, RateLimiter())
        content = await fetcher.fetch_release(linked_commits, label_filter)
    """

    def __init__(
        self,
        client: ShortcutClientProtocol,
        rate_limiter: RateLimiter | None = None,
        max_concurrency: int = 16,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Shortcut client (real or mock)
            rate_limiter: Limiter shared by every request of the run
            max_concurrency: Upper bound on in-flight requests
        """
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_concurrency = max_concurrency

    async def fetch_release(
        self,
        linked_commits: LinkedCommits,
        label_filter: StoryLabelFilter | None = None,
    ) -> ReleaseContent:
        """Fetch stories, filter them by label, then fetch their epics.

        Raises:
            FetchRoundError: If any story or epic request failed
        """
        stories = await self.get_stories(linked_commits.story_commits)
        if label_filter is not None and not label_filter.is_empty():
            kept = label_filter.apply(stories)
            logger.info(
                "stories_filtered_by_label",
                fetched=len(stories),
                kept=len(kept),
                filter=repr(label_filter),
            )
            stories = kept
        epics = await self.get_epics(stories)
        return assemble_release(stories, epics, linked_commits.unparsed_commits)

    async def get_stories(self, story_ids: Iterable[StoryId]) -> list[Story]:
        """Fetch every distinct story, sorted by id."""
        return await self._fetch_round(
            "stories", story_ids, self.client.get_story, StoryFetchError
        )

    async def get_epics(self, stories: Iterable[Story]) -> list[Epic]:
        """Fetch the distinct epics referenced by ``stories``, sorted by id."""
        epic_ids = {story.epic_id for story in stories if story.epic_id is not None}
        return await self._fetch_round("epics", epic_ids, self.client.get_epic, EpicFetchError)

    async def _fetch_round(
        self,
        entity: str,
        ids: Iterable[int],
        fetch: Callable[[int], Awaitable[T]],
        error_type: type[StoryFetchError] | type[EpicFetchError],
    ) -> list[T]:
        """Issue one rate-limited fetch per distinct id and join them all.

        Args:
            entity: "stories" or "epics", for logs and errors
            ids: Ids to fetch (duplicates are fetched once)
            fetch: Coroutine function fetching one id
            error_type: Per-id error wrapping a failure's cause

        Returns:
            Fetched entities, one per id, sorted by id

        Raises:
            FetchRoundError: If one or more fetches failed
        """
        unique_ids = sorted(set(ids))
        if not unique_ids:
            logger.debug("fetch_round_skipped", entity=entity)
            return []

        gate = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(item_id: int) -> T:
            async with gate:
                await self.rate_limiter.acquire()
                return await fetch(item_id)

        logger.info("fetch_round_started", entity=entity, count=len(unique_ids))
        results = await asyncio.gather(
            *(fetch_one(item_id) for item_id in unique_ids),
            return_exceptions=True,
        )

        items: dict[int, T] = {}
        errors: list[StoryFetchError | EpicFetchError] = []
        for item_id, result in zip(unique_ids, results):
            if isinstance(result, Exception):
                errors.append(error_type(item_id, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                items[result.id] = result

        if errors:
            logger.error(
                "fetch_round_failed",
                entity=entity,
                failed_ids=[e.identifier for e in errors],
                succeeded=len(items),
            )
            raise FetchRoundError(entity, errors)

        logger.info("fetch_round_complete", entity=entity, count=len(items))
        return [items[key] for key in sorted(items)]
