"""Issue update step.

Scans the change logs of the current build and a window of earlier builds
for issue keys, then comments on the matching JIRA issues that are in the
configured status and progresses them through the configured workflow
action. Tracker failures are written to the build log and never block the
pipeline unless ``fail_on_error`` is set.
"""

from __future__ import annotations

import logging
import re

from issue_updater.config import StepConfig, fix_empty_and_trim
from issue_updater.core.environment import expand
from issue_updater.core.models import Build, BuildContext, StepResult
from issue_updater.errors import ConfigurationError
from issue_updater.tracker.connection import TrackerConnection, TrackerSession

logger = logging.getLogger(__name__)


def compile_issue_pattern(pattern: str | None) -> re.Pattern[str]:
    """Compile an issue-key pattern.

    Raises:
        ConfigurationError: If the pattern is empty or not a valid regex.
    """
    if pattern is None:
        raise ConfigurationError("No issue pattern configured")
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid issue pattern {pattern!r}: {e}") from e


def extract_issue_keys(build: Build, pattern: re.Pattern[str], num_of_pre_build: int) -> list[str]:
    """Collect issue keys from the current build and up to N earlier builds.

    Only the first match in each commit message is taken. Keys keep their
    case and the order in which they were first seen.

    Args:
        build: The current build.
        pattern: Compiled issue-key pattern.
        num_of_pre_build: Number of earlier builds to scan besides the current one.

    Returns:
        Deduplicated list of issue keys.
    """
    keys: dict[str, None] = {}
    for index, visited in enumerate(build.ancestors()):
        if index > num_of_pre_build:
            break
        for entry in visited.changes:
            match = pattern.search(entry.message)
            if match:
                keys.setdefault(match.group(0))
    return list(keys)


def build_status_query(issue_keys: list[str], status: str) -> str:
    escaped = status.replace("\\", "\\\\").replace('"', '\\"')
    return f'id in ({",".join(issue_keys)}) and status = "{escaped}"'


def is_already_commented(comment: str, existing: list[str | None]) -> bool:
    lowered = comment.lower()
    return any(body is not None and body.lower() == lowered for body in existing)


class IssueUpdateStep:
    """Build step that updates the JIRA issues referenced by commit messages."""

    def __init__(self, config: StepConfig) -> None:
        self.config = config

    def perform(self, context: BuildContext, tracker: TrackerConnection | None) -> StepResult:
        """Run the step for one build.

        Args:
            context: Current build, environment and build-log sink.
            tracker: Connection to the JIRA instance; None when unconfigured.

        Returns:
            Step result. ``success`` is False only for an unusable issue
            pattern, or for tracker errors when ``fail_on_error`` is set.
        """
        context.println("[INFO] Updating associated JIRA issue(s)...")
        comment = fix_empty_and_trim(expand(self.config.comments, context.environment))
        raw_pattern = fix_empty_and_trim(expand(self.config.issue_pattern, context.environment))

        try:
            pattern = compile_issue_pattern(raw_pattern)
        except ConfigurationError as e:
            logger.error(str(e))
            context.println(f"[ERROR] {e}")
            return StepResult(success=False, error=str(e))

        issue_keys = extract_issue_keys(context.build, pattern, self.config.num_of_pre_build)
        if not issue_keys:
            context.println("[INFO] No issue key extracted.")
            return StepResult(success=True)

        context.println(f"[INFO] Extracted issues key(s) -> ({','.join(issue_keys)})")
        result = StepResult(success=True, issue_keys=issue_keys)

        try:
            if tracker is None:
                raise ConfigurationError("No JIRA URL configured")
            if comment is None:
                raise ConfigurationError("No comment text configured")
            with tracker.create_session() as session:
                self._update_issues(session, issue_keys, comment, context, result)
        except Exception as e:
            logger.error(f"Failed to update JIRA issues {issue_keys}: {e}")
            context.println(f"[ERROR] {e}")
            result.error = str(e)
            result.success = not self.config.fail_on_error

        return result

    def _update_issues(
        self,
        session: TrackerSession,
        issue_keys: list[str],
        comment: str,
        context: BuildContext,
        result: StepResult,
    ) -> None:
        status = self.config.status_for_transition
        service = session.service
        token = session.token

        issues = service.get_issues_from_jql_search(token, build_status_query(issue_keys, status), len(issue_keys))
        if not issues:
            context.println(f'[INFO] No Jira issue in "{status}" status')
            return

        for issue in issues:
            existing = [c.body for c in service.get_comments(token, issue.key)]
            if is_already_commented(comment, existing):
                logger.debug(f"{issue.key} already carries the comment, skipping")
                result.skipped.append(issue.key)
                continue

            if self.config.dry_run:
                context.println(f"[DRY RUN] Would add comment to {issue.key} -> {comment}")
            else:
                context.println(f"[INFO] Comments added -> {comment}")
                service.add_comment(token, issue.key, comment)
            result.commented.append(issue.key)

            self._progress_issue(session, issue.key, context, result)

    def _progress_issue(self, session: TrackerSession, issue_key: str, context: BuildContext, result: StepResult) -> None:
        action_name = self.config.assign_for_action
        if not action_name:
            return

        for action in session.service.get_available_actions(session.token, issue_key):
            if action.name.lower() != action_name.lower():
                continue
            if self.config.dry_run:
                context.println(f"[DRY RUN] Would progress issue [{issue_key}] -> [{action_name}]")
            else:
                context.println(f"[INFO] Progress issue [{issue_key}] -> [{action_name}]")
                session.service.progress_workflow_action(session.token, issue_key, action.id, [])
            if issue_key not in result.transitioned:
                result.transitioned.append(issue_key)
