"""Remote JIRA types and SOAP fault mapping.

suds returns loosely typed objects built from the WSDL; they are converted
into the dataclasses below so the rest of the package does not depend on
suds' object model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from suds import WebFault

from issue_updater.errors import AuthenticationError, RemoteProtocolError, TrackerClientError

SOAP_ENCODING_NS = "http://schemas.xmlsoap.org/soap/encoding/"
BEANS_NS = "http://beans.soap.rpc.jira.atlassian.com"

AUTH_FAULT_MARKER = "RemoteAuthenticationException"


def _text(value: Any, name: str) -> str | None:
    field = getattr(value, name, None)
    return None if field is None else str(field)


def as_list(value: Any) -> list[Any]:
    """Normalize an array return value; suds yields None for nil arrays."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class RemoteIssue:
    """An issue as returned by the tracker."""

    key: str
    status: str = ""  # Status id, as reported by the SOAP service
    summary: str = ""

    @classmethod
    def from_soap(cls, value: Any) -> RemoteIssue:
        return cls(
            key=_text(value, "key") or "",
            status=_text(value, "status") or "",
            summary=_text(value, "summary") or "",
        )


@dataclass
class RemoteComment:
    """A comment attached to an issue."""

    body: str | None
    author: str | None = None
    id: str | None = None

    @classmethod
    def from_soap(cls, value: Any) -> RemoteComment:
        return cls(body=_text(value, "body"), author=_text(value, "author"), id=_text(value, "id"))


@dataclass
class RemoteNamedObject:
    """A named tracker object; used for workflow actions."""

    id: str
    name: str

    @classmethod
    def from_soap(cls, value: Any) -> RemoteNamedObject:
        return cls(id=_text(value, "id") or "", name=_text(value, "name") or "")


def fault_error(error: WebFault) -> TrackerClientError:
    """Map a SOAP fault to the package's exception types."""
    fault = getattr(error, "fault", None)
    fault_code = _text(fault, "faultcode") or ""
    fault_string = (_text(fault, "faultstring") or "").strip()
    detail = _text(fault, "detail") or ""

    message = fault_string or fault_code or "Unknown SOAP fault"
    if AUTH_FAULT_MARKER in fault_string or AUTH_FAULT_MARKER in detail:
        return AuthenticationError(message)
    return RemoteProtocolError(message, fault_code=fault_code or None)
