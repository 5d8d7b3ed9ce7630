"""Configuration schema — validates sitegen.yml."""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from sitegen.schemas.project import DEFAULT_OPINION


class RetrySettings(BaseModel):
    """Attempt budget and backoff curve shared by every external call."""

    max_retries: int = 5
    initial_delay: float = 2.0  # seconds
    multiplier: float = 1.5
    max_delay: float = 60.0

    @model_validator(mode="after")
    def check_bounds(self) -> "RetrySettings":
        if self.max_retries < 1:
            raise ValueError("retry.max_retries must be at least 1")
        if self.multiplier < 1:
            raise ValueError("retry.multiplier must be >= 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")
        return self


class GitHubSettings(BaseModel):
    api_url: str = "https://api.github.com"
    default_branch: str = "main"
    default_path: str = "docs"
    timeout: float = 30.0


class AppConfig(BaseModel):
    """Top-level configuration loaded from sitegen.yml.

    Every section is optional; an empty file yields the defaults.
    """

    # Generation Service
    model: str = "gpt-4o"
    max_tokens: int = 16_384

    retry: RetrySettings = Field(default_factory=RetrySettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)

    # Where the project state JSON lives
    state_path: str = "~/.sitegen/state.json"

    # Prefilled intent statement for a fresh project
    default_opinion: str = DEFAULT_OPINION

    @property
    def resolved_state_path(self) -> Path:
        return Path(self.state_path).expanduser()
