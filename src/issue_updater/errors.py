"""Exception hierarchy for the issue updater."""

from __future__ import annotations


class IssueUpdaterError(Exception):
    """Base exception for all issue updater errors."""


class ConfigurationError(IssueUpdaterError):
    """Invalid issue pattern, missing tracker URL or unreadable config file."""


class TrackerClientError(IssueUpdaterError):
    """Base exception for remote tracker errors."""


class AuthenticationError(TrackerClientError):
    """The tracker rejected the supplied credentials."""


class ConnectivityError(TrackerClientError):
    """The tracker could not be reached or answered with an HTTP error."""


class RemoteProtocolError(TrackerClientError):
    """The tracker answered with a SOAP fault or a malformed response."""

    def __init__(self, message: str, fault_code: str | None = None) -> None:
        super().__init__(message)
        self.fault_code = fault_code
