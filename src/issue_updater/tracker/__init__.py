"""JIRA SOAP tracker access."""

from issue_updater.tracker.client import JiraSoapClient
from issue_updater.tracker.connection import (
    CheckResult,
    TrackerConnection,
    TrackerSession,
    check_pattern,
    check_url,
    validate_login,
)
from issue_updater.tracker.soap import RemoteComment, RemoteIssue, RemoteNamedObject
from issue_updater.tracker.transport import HttpxTransport

__all__ = [
    "CheckResult",
    "HttpxTransport",
    "JiraSoapClient",
    "RemoteComment",
    "RemoteIssue",
    "RemoteNamedObject",
    "TrackerConnection",
    "TrackerSession",
    "check_pattern",
    "check_url",
    "validate_login",
]
