"""Core data models for the issue updater."""

from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TextIO

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Build Models
# =============================================================================


class ChangeLogEntry(BaseModel):
    """A single commit associated with a build."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    message: str
    author: str = ""
    commit_id: str | None = None


class Build(BaseModel):
    """A build with its change log and a link to the build before it."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    changes: list[ChangeLogEntry] = Field(default_factory=list)
    previous: Build | None = Field(default=None, repr=False)

    def ancestors(self) -> Iterator[Build]:
        """Yield this build followed by every earlier build."""
        build: Build | None = self
        while build is not None:
            yield build
            build = build.previous


Build.model_rebuild()


def link_builds(builds: list[Build]) -> Build | None:
    """Chain builds given newest first and return the newest one."""
    previous: Build | None = None
    for build in reversed(builds):
        build.previous = previous
        previous = build
    return previous


@dataclass
class BuildContext:
    """What the caller supplies for one step invocation.

    Attributes:
        build: The current build
        environment: Variables available to $VAR / ${VAR} expansion
        log: Sink for build-log lines
    """

    build: Build
    environment: Mapping[str, str] = field(default_factory=dict)
    log: TextIO = field(default_factory=lambda: sys.stdout)

    def println(self, line: str) -> None:
        self.log.write(line + "\n")


# =============================================================================
# Result Models
# =============================================================================


class StepResult(BaseModel):
    """Outcome of an issue update step."""

    success: bool
    issue_keys: list[str] = Field(default_factory=list)
    commented: list[str] = Field(default_factory=list)
    transitioned: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    error: str | None = None
