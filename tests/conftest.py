"""Shared fixtures: an in-memory JIRA instance standing in for the suds SOAP client."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest
from suds import WebFault

from issue_updater.config import TrackerConfig
from issue_updater.tracker.connection import TrackerConnection

BASE_URL = "https://jira.example.com/"
JQL_PATTERN = re.compile(r'id in \((?P<keys>[^)]*)\) and status = "(?P<status>.*)"$')
AUTH_FAULT = "com.atlassian.jira.rpc.exception.RemoteAuthenticationException: Invalid username or password."

STATUS_IDS = {"Open": "1", "In Progress": "3", "Resolved": "5"}

# Login-only JIRA WSDL, enough for suds to build a working client
LOGIN_WSDL = """\
<?xml version="1.0" encoding="UTF-8"?>
<wsdl:definitions targetNamespace="https://jira.example.com/rpc/soap/jirasoapservice-v2"
    xmlns:impl="https://jira.example.com/rpc/soap/jirasoapservice-v2"
    xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/"
    xmlns:wsdlsoap="http://schemas.xmlsoap.org/wsdl/soap/"
    xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <wsdl:message name="loginRequest">
    <wsdl:part name="in0" type="xsd:string"/>
    <wsdl:part name="in1" type="xsd:string"/>
  </wsdl:message>
  <wsdl:message name="loginResponse">
    <wsdl:part name="loginReturn" type="xsd:string"/>
  </wsdl:message>
  <wsdl:portType name="JiraSoapService">
    <wsdl:operation name="login" parameterOrder="in0 in1">
      <wsdl:input message="impl:loginRequest" name="loginRequest"/>
      <wsdl:output message="impl:loginResponse" name="loginResponse"/>
    </wsdl:operation>
  </wsdl:portType>
  <wsdl:binding name="jirasoapservice-v2SoapBinding" type="impl:JiraSoapService">
    <wsdlsoap:binding style="rpc" transport="http://schemas.xmlsoap.org/soap/http"/>
    <wsdl:operation name="login">
      <wsdlsoap:operation soapAction=""/>
      <wsdl:input name="loginRequest">
        <wsdlsoap:body encodingStyle="http://schemas.xmlsoap.org/soap/encoding/"
            namespace="http://soap.rpc.jira.atlassian.com" use="encoded"/>
      </wsdl:input>
      <wsdl:output name="loginResponse">
        <wsdlsoap:body encodingStyle="http://schemas.xmlsoap.org/soap/encoding/"
            namespace="https://jira.example.com/rpc/soap/jirasoapservice-v2" use="encoded"/>
      </wsdl:output>
    </wsdl:operation>
  </wsdl:binding>
  <wsdl:service name="JiraSoapServiceService">
    <wsdl:port binding="impl:jirasoapservice-v2SoapBinding" name="jirasoapservice-v2">
      <wsdlsoap:address location="https://jira.example.com/rpc/soap/jirasoapservice-v2"/>
    </wsdl:port>
  </wsdl:service>
</wsdl:definitions>
"""


def soap_envelope(body: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/"'
        ' xmlns:xsd="http://www.w3.org/2001/XMLSchema"'
        ' xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        f"<soapenv:Body>{body}</soapenv:Body></soapenv:Envelope>"
    )


def soap_fault(message: str) -> str:
    return soap_envelope(
        "<soapenv:Fault><faultcode>soapenv:Server.userException</faultcode>"
        f"<faultstring>{message}</faultstring></soapenv:Fault>"
    )


def web_fault(message: str) -> WebFault:
    fault = SimpleNamespace(faultcode="soapenv:Server.userException", faultstring=message, detail=None)
    return WebFault(fault, None)


@dataclass
class FakeIssue:
    key: str
    status: str = "Open"
    comments: list[str] = field(default_factory=list)
    # action name -> (action id, status after the action)
    actions: dict[str, tuple[str, str]] = field(default_factory=lambda: {"Resolve": ("5", "Resolved")})


class FakeSoapClient:
    """Mimics the parts of suds.client.Client used by JiraSoapClient."""

    def __init__(self, server: FakeJiraService) -> None:
        self.service = server
        self.factory = SimpleNamespace(create=self._create)

    @staticmethod
    def _create(type_name: str) -> SimpleNamespace:
        assert type_name.endswith("RemoteComment")
        return SimpleNamespace(author=None, body=None, id=None)


class FakeJiraService:
    """Minimal JIRA SOAP service backed by dictionaries.

    Methods are named after the remote operations so the object can stand
    in for ``suds.client.Client.service``.
    """

    def __init__(self) -> None:
        self.users = {"alice": "secret"}
        self.issues: dict[str, FakeIssue] = {}
        self.calls: list[tuple[str, list[object]]] = []
        self.wsdl_urls: list[str] = []
        self.token = "token-1"
        self.root_page = "<html><title>System Dashboard - Atlassian JIRA</title></html>"
        self.wsdl = '<wsdl:definitions xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/"/>'

    def add_issue(self, key: str, **kwargs: object) -> FakeIssue:
        issue = FakeIssue(key=key, **kwargs)  # type: ignore[arg-type]
        self.issues[key] = issue
        return issue

    def client(self, url: str, **options: object) -> FakeSoapClient:
        self.wsdl_urls.append(url)
        return FakeSoapClient(self)

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def calls_to(self, operation: str) -> list[list[object]]:
        return [args for name, args in self.calls if name == operation]

    # -------------------------------------------------------------------------
    # Web pages (root page and WSDL) for the reachability check
    # -------------------------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("jirasoapservice-v2") and b"wsdl" in request.url.query:
            return httpx.Response(200, text=self.wsdl)
        return httpx.Response(200, text=self.root_page)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _record(self, operation: str, *args: object) -> None:
        self.calls.append((operation, list(args)))
        if operation != "login" and args[0] != self.token:
            raise web_fault("com.atlassian.jira.rpc.exception.RemoteAuthenticationException: session expired")

    def login(self, username: str | None, password: str | None) -> str:
        self._record("login", username, password)
        if username not in self.users or self.users[username] != password:
            raise web_fault(AUTH_FAULT)
        return self.token

    def getIssuesFromJqlSearch(self, token: str, jql: str, max_results: int) -> list[SimpleNamespace]:  # noqa: N802
        self._record("getIssuesFromJqlSearch", token, jql, max_results)
        match = JQL_PATTERN.match(jql)
        if match is None:
            raise web_fault(f"Invalid JQL: {jql}")
        keys = [key.strip() for key in match.group("keys").split(",")]
        found = [
            self.issues[key] for key in keys if key in self.issues and self.issues[key].status == match.group("status")
        ][:max_results]
        return [self._remote_issue(issue) for issue in found]

    def getComments(self, token: str, key: str) -> list[SimpleNamespace]:  # noqa: N802
        self._record("getComments", token, key)
        return [
            SimpleNamespace(author="bob", body=body, id=str(10000 + i))
            for i, body in enumerate(self.issues[key].comments)
        ]

    def addComment(self, token: str, key: str, comment: SimpleNamespace) -> None:  # noqa: N802
        self._record("addComment", token, key, comment)
        self.issues[key].comments.append(comment.body)

    def getAvailableActions(self, token: str, key: str) -> list[SimpleNamespace]:  # noqa: N802
        self._record("getAvailableActions", token, key)
        return [SimpleNamespace(id=action_id, name=name) for name, (action_id, _) in self.issues[key].actions.items()]

    def progressWorkflowAction(  # noqa: N802
        self, token: str, key: str, action_id: str, fields: list[object]
    ) -> SimpleNamespace:
        self._record("progressWorkflowAction", token, key, action_id, fields)
        issue = self.issues[key]
        for candidate, target in issue.actions.values():
            if candidate == action_id:
                issue.status = target
                return self._remote_issue(issue)
        raise web_fault(f"Action {action_id} not available for {key}")

    @staticmethod
    def _remote_issue(issue: FakeIssue) -> SimpleNamespace:
        return SimpleNamespace(
            key=issue.key, status=STATUS_IDS.get(issue.status, "0"), summary=f"Summary of {issue.key}"
        )


@pytest.fixture
def jira_server() -> Iterator[FakeJiraService]:
    """Fake JIRA; every JiraSoapClient created during the test talks to it."""
    server = FakeJiraService()
    with patch("issue_updater.tracker.client.Client", side_effect=server.client):
        yield server


@pytest.fixture
def tracker_config() -> TrackerConfig:
    return TrackerConfig(url=BASE_URL, username="alice", password="secret")


@pytest.fixture
def connection(tracker_config: TrackerConfig, jira_server: FakeJiraService) -> TrackerConnection:
    return TrackerConnection(tracker_config)
