"""Tracker connection: sessions, issue URLs and configuration checks."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx
from pydantic import ValidationError

from issue_updater.config import TrackerConfig, fix_empty
from issue_updater.errors import TrackerClientError
from issue_updater.tracker.client import DEFAULT_TIMEOUT, WSDL_PATH, JiraSoapClient

logger = logging.getLogger(__name__)

ROOT_PAGE_MARKER = "Atlassian JIRA"
WSDL_MARKER = "wsdl:definitions"


@dataclass
class CheckResult:
    """Outcome of a configuration check."""

    ok: bool
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> CheckResult:
        return cls(ok=True, message=message)

    @classmethod
    def error(cls, message: str) -> CheckResult:
        return cls(ok=False, message=message)


@dataclass
class TrackerSession:
    """Authenticated handle valid for a single update run."""

    token: str
    service: JiraSoapClient

    def close(self) -> None:
        self.service.close()

    def __enter__(self) -> TrackerSession:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


class TrackerConnection:
    """Creates sessions against the configured JIRA instance.

    Credentials left unset in the configuration are read from the
    JIRA_USERNAME and JIRA_PASSWORD environment variables.
    """

    def __init__(
        self,
        config: TrackerConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._transport = transport
        # Never log these
        self._username = config.username or fix_empty(os.getenv("JIRA_USERNAME"))
        self._password = config.password or fix_empty(os.getenv("JIRA_PASSWORD"))

    @property
    def url(self) -> str:
        return self.config.url

    def create_session(self) -> TrackerSession:
        """Log in and return a new session.

        Raises:
            AuthenticationError: If the credentials are rejected.
            ConnectivityError: If the SOAP endpoint cannot be reached.
        """
        service = JiraSoapClient(self.url, timeout=self.timeout, transport=self._transport)
        try:
            token = service.login(self._username, self._password)
        except TrackerClientError:
            service.close()
            raise
        logger.debug(f"Opened JIRA session on {self.url}")
        return TrackerSession(token=token, service=service)

    def resolve_issue_url(self, key: str) -> str:
        """Computes the URL to the given issue."""
        return urljoin(self.url, "browse/" + key.upper())


# =============================================================================
# Configuration checks
# =============================================================================


def _find_text(client: httpx.Client, url: str, marker: str) -> bool:
    response = client.get(url)
    response.raise_for_status()
    return marker in response.text


def check_url(
    value: str | None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> CheckResult:
    """Checks if the JIRA URL is accessible and serves the SOAP service."""
    url = fix_empty(value.strip() if value else None)
    if url is None:
        return CheckResult.error("Invalid Jira URL")
    if not url.endswith("/"):
        url += "/"

    try:
        if not httpx.URL(url).host:
            return CheckResult.error("Invalid Jira URL")
        with httpx.Client(timeout=timeout, transport=transport, follow_redirects=True) as client:
            if not _find_text(client, url, ROOT_PAGE_MARKER):
                return CheckResult.error("Soap Service is unreachable")
            if not _find_text(client, urljoin(url, WSDL_PATH), WSDL_MARKER):
                return CheckResult.error("Invalid WSDL")
    except (httpx.InvalidURL, ValueError) as e:
        logger.warning(f"Malformed JIRA URL {url}: {e}")
        return CheckResult.error(f"Invalid Jira URL: {e}")
    except httpx.HTTPError as e:
        logger.warning(f"Unable to connect to {url}: {e}")
        return CheckResult.error(f"Unable to connect to {url}: {e}")

    return CheckResult.success()


def validate_login(
    url: str | None,
    username: str | None,
    password: str | None,
    transport: httpx.BaseTransport | None = None,
) -> CheckResult:
    """Checks if the user name and password are valid."""
    url = fix_empty(url)
    if url is None:
        return CheckResult.error("No URL given")

    try:
        config = TrackerConfig(url=url, username=username, password=password)
    except ValidationError as e:
        return CheckResult.error(f"Invalid URL: {url} ({e.error_count()} error(s))")

    connection = TrackerConnection(config, transport=transport)
    try:
        with connection.create_session():
            return CheckResult.success("Success")
    except TrackerClientError as e:
        logger.warning(f"Failed to login to JIRA at {url}: {e}")
        return CheckResult.error(str(e))


def check_pattern(value: str | None) -> CheckResult:
    """Checks that an issue pattern compiles; an empty pattern is accepted."""
    pattern = fix_empty(value)
    if pattern is None:
        return CheckResult.success()
    try:
        re.compile(pattern)
    except re.error as e:
        return CheckResult.error(str(e))
    return CheckResult.success()
