"""Configuration management for the issue updater."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from issue_updater.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path(".issue-updater/config.yaml")

# Matches keys in PROJECT-NUMBER format
DEFAULT_ISSUE_PATTERN = r"[A-Z][A-Z0-9_]+-\d+"
DEFAULT_COMMENT = "Integrated in build ${BUILD_ID}"


def fix_empty(value: str | None) -> str | None:
    """Return None for None or empty strings, the value otherwise."""
    if value is None or value == "":
        return None
    return value


def fix_empty_and_trim(value: str | None) -> str | None:
    """Trim the value and return None if nothing is left."""
    if value is None:
        return None
    return fix_empty(value.strip())


class TrackerConfig(BaseModel):
    """Connection settings for the JIRA instance.

    The URL always ends with a trailing slash so that relative paths
    (``browse/KEY``, ``rpc/soap/...``) resolve below it.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Base URL of the JIRA instance")
    username: str | None = Field(default=None, description="User name needed to login. Optional.")
    password: str | None = Field(default=None, description="Password needed to login. Optional.", repr=False)

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Invalid URL: {value!r}")
        if not value.endswith("/"):
            value += "/"
        return value

    @field_validator("username", "password")
    @classmethod
    def _empty_to_none(cls, value: str | None) -> str | None:
        return fix_empty(value)


class DefaultsConfig(BaseModel):
    """Global defaults used by steps that leave these fields unset."""

    issue_pattern: str = Field(default=DEFAULT_ISSUE_PATTERN, description="Regex used to find issue keys")
    comments: str = Field(default=DEFAULT_COMMENT, description="Comment template added to matching issues")


class StepConfig(BaseModel):
    """Parameters of a single issue update step."""

    issue_pattern: str | None = Field(default=None, description="Regex used to find issue keys in commit messages")
    comments: str | None = Field(default=None, description="Comment text; $VAR and ${VAR} are expanded")
    num_of_pre_build: int = Field(default=0, description="Number of prior builds scanned besides the current one")
    status_for_transition: str = Field(default="Open", description="Only issues in this status are updated")
    assign_for_action: str = Field(default="", description="Workflow action triggered after commenting")
    dry_run: bool = Field(default=False, description="Log mutations without executing them")
    fail_on_error: bool = Field(
        default=False,
        description="Fail the step when the tracker cannot be updated (default: report and succeed)",
    )

    def with_defaults(self, defaults: DefaultsConfig) -> StepConfig:
        """Return a copy with unset pattern/comment taken from the defaults."""
        return self.model_copy(
            update={
                "issue_pattern": self.issue_pattern if self.issue_pattern is not None else defaults.issue_pattern,
                "comments": self.comments if self.comments is not None else defaults.comments,
            }
        )


class Config(BaseModel):
    """Issue updater configuration.

    Sections:
        tracker: JIRA base URL and optional credentials
        defaults: fallback issue pattern and comment text
        step: parameters of the update step
    """

    tracker: TrackerConfig | None = None
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    step: StepConfig = Field(default_factory=StepConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from file or use defaults."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if not config_path.exists():
            return cls()

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    def save(self, config_path: Path) -> None:
        """Save configuration to file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)

    def require_tracker(self) -> TrackerConfig:
        """Return the tracker settings or fail when no URL is configured."""
        if self.tracker is None:
            raise ConfigurationError("No JIRA URL configured")
        return self.tracker

    def resolved_step(self, **overrides: object) -> StepConfig:
        """Return the step settings with overrides applied and defaults filled in."""
        return self.step.model_copy(update=overrides).with_defaults(self.defaults)
