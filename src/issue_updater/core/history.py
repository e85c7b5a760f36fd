"""Load build histories exported as YAML.

Expected layout, newest build first::

    - id: "42"
      changes:
        - message: "PROJ-12 fix login"
          author: alice
          commit_id: 3f2a9c1
    - id: "41"
      changes: []
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from issue_updater.core.models import Build, link_builds
from issue_updater.errors import ConfigurationError


def builds_from_records(records: list[dict[str, object]]) -> Build | None:
    """Validate raw build records and link them into a chain."""
    try:
        builds = [Build.model_validate(record) for record in records]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid build record: {e}") from e
    return link_builds(builds)


def load_build_history(path: Path) -> Build | None:
    """Read a YAML build history and return the newest build."""
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or []
    except OSError as e:
        raise ConfigurationError(f"Cannot read build history {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse build history {path}: {e}") from e

    if not isinstance(data, list):
        raise ConfigurationError(f"Build history {path} must be a list of builds")
    return builds_from_records(data)
