"""Application configuration loaded from YAML.

Example ``config.yaml``:

    api_key: "<your_shortcut_api_key>"
    template_file: template.md.jinja
    excluded_labels: [internal]

    repositories:
      # Name of the first repository, can be anything
      dev: {location: ../project1, release_branch: master, next_branch: next}
      legacy: {location: ../project2, release_branch: master, next_branch: next}

The API key may be left out of the file and provided through the
``SHORTCUT_API_TOKEN`` environment variable instead.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from release_helper.errors import ConfigError
from release_helper.linker import STORY_ID_RE, StoryLabelFilter
from release_helper.ratelimit import SHORTCUT_REQUESTS_PER_MINUTE
from release_helper.schemas import RepositoryConfiguration

API_KEY_ENV_VAR = "SHORTCUT_API_TOKEN"
DEFAULT_CONFIG_PATH = Path("config.yaml")


class AppConfig(BaseModel):
    """Top-level configuration.

    Attributes:
        api_key: Shortcut API token (falls back to SHORTCUT_API_TOKEN)
        template_file: Template handed to the renderer, if any
        repositories: Project name -> repository configuration
        excluded_labels: Stories carrying any of these labels are dropped
        included_labels: Stories must carry all of these labels
        rate_limit_per_minute: Shortcut request quota shared by the run
        max_concurrency: Upper bound on in-flight Shortcut requests
        story_pattern: Regex overriding the default story reference pattern
    """

    api_key: str | None = None
    template_file: Path | None = None
    repositories: dict[str, RepositoryConfiguration]
    excluded_labels: list[str] = Field(default_factory=list)
    included_labels: list[str] = Field(default_factory=list)
    rate_limit_per_minute: int = Field(SHORTCUT_REQUESTS_PER_MINUTE, gt=0)
    max_concurrency: int = Field(16, gt=0)
    story_pattern: str | None = None

    @field_validator("repositories")
    @classmethod
    def check_has_repositories(
        cls, value: dict[str, RepositoryConfiguration]
    ) -> dict[str, RepositoryConfiguration]:
        if not value:
            raise ValueError("at least one repository must be configured")
        return value

    @field_validator("story_pattern")
    @classmethod
    def check_story_pattern(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"story_pattern does not compile: {exc}") from exc
        if compiled.groups < 1:
            raise ValueError("story_pattern must capture the story id in a group")
        return value

    def compiled_story_pattern(self) -> re.Pattern[str]:
        if self.story_pattern is None:
            return STORY_ID_RE
        return re.compile(self.story_pattern)

    def label_filter(self) -> StoryLabelFilter:
        return StoryLabelFilter(
            excluded_labels=self.excluded_labels,
            included_labels=self.included_labels,
        )

    def resolve_api_key(self) -> str:
        """Return the API key from the config file or the environment.

        Raises:
            ConfigError: If neither provides one
        """
        key = self.api_key or os.environ.get(API_KEY_ENV_VAR, "")
        if not key:
            raise ConfigError(
                "No Shortcut API key configured",
                suggestion=f"Set 'api_key' in the config file or export {API_KEY_ENV_VAR}.",
            )
        return key


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate a YAML configuration file.

    Relative repository locations are resolved against the directory of
    the configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A validated AppConfig.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails
            validation.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {path}: {exc}") from exc

    base_dir = config_path.parent
    repositories = {
        name: repo.model_copy(update={"location": base_dir / repo.location})
        if not repo.location.is_absolute()
        else repo
        for name, repo in config.repositories.items()
    }
    return config.model_copy(update={"repositories": repositories})
