"""Release notes generator: orchestration and CLI.

This module ties together all the components:
- History resolution (context/git.py)
- Story linking and label filtering (linker.py)
- Rate-limited Shortcut fetches (context/shortcut.py, ratelimit.py)
- Final composition (assembler.py)

The generator follows this flow:
1. Resolve unreleased commits for every project, concurrently
2. Link commits to story ids, honoring excluded ids
3. Fetch the stories, filter them by label, fetch their epics
4. Return the ReleaseContent handed to the renderer

Any failure stops the run; nothing is written.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path

from dotenv import load_dotenv

from release_helper.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from release_helper.context.git import resolve_projects
from release_helper.context.shortcut import (
    ReleaseFetcher,
    ShortcutClient,
    ShortcutClientProtocol,
)
from release_helper.errors import ReleaseHelperError
from release_helper.linker import link_commits
from release_helper.logging_config import get_logger, setup_logging
from release_helper.ratelimit import RateLimiter
from release_helper.schemas import LinkedCommits, Release, ReleaseContent, StoryId
from release_helper.values import to_value

logger = get_logger(__name__)


class ReleaseNotesGenerator:
    """Runs the whole pipeline for one configuration.

    Usage:
        generator = ReleaseNotesGenerator(load_config("config.yaml"))
        content = await generator.generate(excluded_story_ids={123})
    """

    def __init__(
        self,
        config: AppConfig,
        client: ShortcutClientProtocol | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize the generator with its dependencies.

        Args:
            config: Validated application configuration
            client: Shortcut client; a real one is opened per run if None
            rate_limiter: Shared limiter; built from the config if None
        """
        self.config = config
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=config.rate_limit_per_minute, window_seconds=60
        )

    async def generate(self, excluded_story_ids: Iterable[StoryId] = ()) -> ReleaseContent:
        """Compute the release content.

        Raises:
            HistoryResolutionError: If any project's history could not be resolved
            FetchRoundError: If any story or epic could not be fetched
            ConfigError: If no API key is available for the real client
        """
        excluded = frozenset(excluded_story_ids)
        logger.info(
            "release_generation_started",
            projects=sorted(self.config.repositories),
            excluded_story_ids=sorted(excluded),
        )
        commits_by_project = await resolve_projects(self.config.repositories)

        linked = link_commits(
            commits_by_project, excluded, self.config.compiled_story_pattern()
        )
        logger.info(
            "commits_linked",
            story_count=len(linked.story_commits),
            unparsed_count=sum(len(c) for c in linked.unparsed_commits.values()),
        )

        if self.client is not None:
            content = await self._fetch(self.client, linked)
        else:
            async with ShortcutClient(self.config.resolve_api_key()) as client:
                content = await self._fetch(client, linked)

        logger.info(
            "release_generation_complete",
            story_count=len(content.stories),
            epic_count=len(content.epics),
        )
        return content

    async def _fetch(
        self, client: ShortcutClientProtocol, linked: LinkedCommits
    ) -> ReleaseContent:
        fetcher = ReleaseFetcher(
            client,
            rate_limiter=self.rate_limiter,
            max_concurrency=self.config.max_concurrency,
        )
        return await fetcher.fetch_release(linked, self.config.label_filter())


def print_summary(content: ReleaseContent) -> None:
    print(f"Total stories: {len(content.stories)}")
    print(f"\nTotal epics: {len(content.epics)}")
    for project, commits in sorted(content.unparsed_commits.items()):
        if commits:
            print(f"\nTotal unparsed commits in {project}: {len(commits)}")


def _print_error(error: ReleaseHelperError) -> None:
    print(f"error: {error.message}", file=sys.stderr)
    for member in getattr(error, "errors", []):
        print(f"  - {member}", file=sys.stderr)
    if error.suggestion:
        print(f"hint: {error.suggestion}", file=sys.stderr)


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-helper",
        description="Find the Shortcut stories of an upcoming release.",
    )
    parser.add_argument("output_file", type=Path, help="Output file for the release payload")
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the YAML configuration (default: config.yaml)",
    )
    parser.add_argument("--version", help="Version to release")
    parser.add_argument("--name", help="Name of the release")
    parser.add_argument("--description", help="Description of the release")
    parser.add_argument(
        "--exclude-story-id",
        type=int,
        action="append",
        default=[],
        metavar="ID",
        help="Id of story to exclude, can be used multiple times",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Usage:
        release-helper --version 3.4.0 --name 'Super release' release.json

    Returns:
        The process exit status
    """
    args = build_parser().parse_args(argv)
    load_dotenv()
    setup_logging(log_level=args.log_level)

    try:
        config = load_config(args.config)
        content = asyncio.run(
            ReleaseNotesGenerator(config).generate(args.exclude_story_id)
        )
    except ReleaseHelperError as e:
        logger.error("release_generation_failed", code=e.code, error=e.message)
        _print_error(e)
        return 1

    print_summary(content)
    release = Release.from_content(
        content,
        name=args.name,
        version=args.version,
        description=args.description,
    )
    args.output_file.write_text(json.dumps(to_value(release), indent=2), encoding="utf-8")
    logger.info("release_written", output_file=str(args.output_file))
    return 0


if __name__ == "__main__":
    sys.exit(main())
