"""Git-related utilities for assembling build change logs from tags.

Each tag matching a pattern (e.g. ``build-*``) marks where a build ended.
The current build holds the commits after the newest tag; every earlier
build holds the commits between its tag and the tag before it.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from issue_updater.core.models import Build, ChangeLogEntry, link_builds

FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"
LOG_FORMAT = "--format=%H%x1f%an%x1f%B%x1e"
CURRENT_BUILD_ID = "HEAD"


def parse_git_log_output(output: str) -> list[ChangeLogEntry]:
    """Parse `git log --format=%H%x1f%an%x1f%B%x1e` output into entries.

    Args:
        output: Raw output, one record per commit terminated by \\x1e.

    Returns:
        Entries in log order (newest first).
    """
    entries: list[ChangeLogEntry] = []

    for record in output.split(RECORD_SEPARATOR):
        record = record.strip("\n")
        if not record.strip():
            continue

        parts = record.split(FIELD_SEPARATOR, 2)
        if len(parts) != 3:
            continue

        commit_id, author, message = parts
        entries.append(
            ChangeLogEntry(
                message=message.strip(),
                author=author,
                commit_id=commit_id.strip(),
            )
        )

    return entries


def _run_git(args: list[str], cwd: Path) -> str | None:
    """Run git and return stdout, or None if it fails or is missing."""
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=30,
            check=False,
        )
    except FileNotFoundError:
        # Git not installed
        return None
    except subprocess.TimeoutExpired:
        return None

    if result.returncode != 0:
        return None
    return result.stdout


def list_build_tags(project_root: Path, tag_pattern: str) -> list[str] | None:
    """List tags matching the pattern reachable from HEAD, newest first."""
    output = _run_git(
        ["tag", "--list", tag_pattern, "--merged", "HEAD", "--sort=-creatordate"],
        project_root,
    )
    if output is None:
        return None
    return [line.strip() for line in output.splitlines() if line.strip()]


def get_change_log(project_root: Path, revision_range: str) -> list[ChangeLogEntry] | None:
    output = _run_git(["log", LOG_FORMAT, revision_range], project_root)
    if output is None:
        return None
    return parse_git_log_output(output)


def get_build_chain(
    project_root: Path | None = None,
    tag_pattern: str = "build-*",
    max_builds: int | None = None,
) -> Build | None:
    """Assemble the current build and its predecessors from git tags.

    Args:
        project_root: Repository directory. Defaults to current directory.
        tag_pattern: Glob selecting the tags that mark finished builds.
        max_builds: Stop after this many builds (current one included).

    Returns:
        The current build linked to earlier builds, or None if git is
        unavailable or the directory is not a repository.
    """
    cwd = project_root or Path.cwd()

    tags = list_build_tags(cwd, tag_pattern)
    if tags is None:
        return None

    # (build id, revision range) pairs, newest first
    ranges: list[tuple[str, str]] = []
    upper = "HEAD"
    build_id = CURRENT_BUILD_ID
    for tag in tags:
        ranges.append((build_id, f"{tag}..{upper}"))
        upper = tag
        build_id = tag
    ranges.append((build_id, upper))

    if max_builds is not None:
        ranges = ranges[: max(max_builds, 0)]

    builds: list[Build] = []
    for build_id, revision_range in ranges:
        changes = get_change_log(cwd, revision_range)
        if changes is None:
            return None
        builds.append(Build(id=build_id, changes=changes))

    if not builds:
        return Build(id=CURRENT_BUILD_ID)
    return link_builds(builds)
