"""JIRA SOAP API client.

This module wraps a suds client built from the JIRA WSDL
(``rpc/soap/jirasoapservice-v2?wsdl``) and exposes the operations needed to
comment on issues and progress them through their workflow.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin
from xml.sax import SAXException

import httpx
from suds import TypeNotFound, WebFault
from suds.cache import NoCache
from suds.client import Client
from suds.xsd.doctor import Import, ImportDoctor

from issue_updater.errors import RemoteProtocolError
from issue_updater.tracker.soap import (
    BEANS_NS,
    SOAP_ENCODING_NS,
    RemoteComment,
    RemoteIssue,
    RemoteNamedObject,
    as_list,
    fault_error,
)
from issue_updater.tracker.transport import HttpxTransport

logger = logging.getLogger(__name__)

SOAP_SERVICE_PATH = "rpc/soap/jirasoapservice-v2"
WSDL_PATH = f"{SOAP_SERVICE_PATH}?wsdl"
DEFAULT_TIMEOUT = 30.0


class JiraSoapClient:
    """Blocking client for the JIRA SOAP service.

    Every method except ``login`` takes the authentication token returned by
    ``login`` as its first argument, mirroring the remote API.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the SOAP client.

        Args:
            base_url: JIRA instance URL; a trailing slash is added if missing.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used to plug in test doubles).
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.endpoint = urljoin(self.base_url, SOAP_SERVICE_PATH)
        self.wsdl_url = urljoin(self.base_url, WSDL_PATH)
        self.timeout = timeout
        self._http = HttpxTransport(timeout=timeout, transport=transport)
        self._soap: Client | None = None

    @property
    def soap(self) -> Client:
        """Lazy-load the WSDL and build the suds client."""
        if self._soap is None:
            logger.debug(f"Loading JIRA WSDL from {self.wsdl_url}")
            try:
                self._soap = Client(
                    self.wsdl_url,
                    transport=self._http,
                    cache=NoCache(),
                    doctor=ImportDoctor(Import(SOAP_ENCODING_NS)),
                )
            except (SAXException, TypeNotFound) as e:
                raise RemoteProtocolError(f"Invalid WSDL at {self.wsdl_url}: {e}") from e
        return self._soap

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()
        self._soap = None

    def __enter__(self) -> JiraSoapClient:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def _call(self, operation: str, *args: Any) -> Any:
        """Invoke a SOAP operation.

        Raises:
            ConnectivityError: On network failures and non-SOAP HTTP errors.
            AuthenticationError: If the tracker reported an authentication fault.
            RemoteProtocolError: For other faults.
        """
        method = getattr(self.soap.service, operation)
        logger.debug(f"SOAP call {operation} -> {self.endpoint}")
        try:
            return method(*args)
        except WebFault as e:
            raise fault_error(e) from e

    # =========================================================================
    # Session
    # =========================================================================

    def login(self, username: str | None, password: str | None) -> str:
        """Authenticate and return a session token."""
        token = self._call("login", username, password)
        if not token:
            raise RemoteProtocolError("login returned no token")
        return str(token).strip()

    # =========================================================================
    # Issue Operations
    # =========================================================================

    def get_issues_from_jql_search(self, token: str, jql: str, max_results: int) -> list[RemoteIssue]:
        """Run a JQL search.

        Args:
            token: Session token.
            jql: JQL query (e.g., 'id in (PROJ-1) and status = "Open"').
            max_results: Maximum number of issues returned.

        Returns:
            Matching issues.
        """
        result = self._call("getIssuesFromJqlSearch", token, jql, max_results)
        return [RemoteIssue.from_soap(item) for item in as_list(result)]

    def get_comments(self, token: str, issue_key: str) -> list[RemoteComment]:
        result = self._call("getComments", token, issue_key)
        return [RemoteComment.from_soap(item) for item in as_list(result)]

    def add_comment(self, token: str, issue_key: str, body: str) -> None:
        comment = self.soap.factory.create(f"{{{BEANS_NS}}}RemoteComment")
        comment.body = body
        self._call("addComment", token, issue_key, comment)

    # =========================================================================
    # Workflow Operations
    # =========================================================================

    def get_available_actions(self, token: str, issue_key: str) -> list[RemoteNamedObject]:
        """List the workflow actions available from the issue's current status."""
        result = self._call("getAvailableActions", token, issue_key)
        return [RemoteNamedObject.from_soap(item) for item in as_list(result)]

    def progress_workflow_action(
        self,
        token: str,
        issue_key: str,
        action_id: str,
        field_values: list[Any] | None = None,
    ) -> RemoteIssue | None:
        """Invoke a workflow action, optionally changing fields on the way."""
        result = self._call("progressWorkflowAction", token, issue_key, action_id, field_values or [])
        if result is None:
            return None
        return RemoteIssue.from_soap(result)
