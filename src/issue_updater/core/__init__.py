"""Issue key extraction and the update step."""

from issue_updater.core.environment import expand
from issue_updater.core.history import load_build_history
from issue_updater.core.models import Build, BuildContext, ChangeLogEntry, StepResult, link_builds
from issue_updater.core.updater import IssueUpdateStep, compile_issue_pattern, extract_issue_keys

__all__ = [
    "Build",
    "BuildContext",
    "ChangeLogEntry",
    "IssueUpdateStep",
    "StepResult",
    "compile_issue_pattern",
    "expand",
    "extract_issue_keys",
    "link_builds",
    "load_build_history",
]
