"""suds transport backed by httpx.

suds fetches the WSDL through ``open`` and posts envelopes through ``send``.
Network failures and HTTP errors that do not carry a SOAP envelope are
raised as ConnectivityError; SOAP faults (HTTP 500 with an envelope) are
handed back to suds so it can raise a WebFault.
"""

from __future__ import annotations

import io
import logging
from xml.sax import SAXException

import httpx
from suds.sax.parser import Parser
from suds.transport import Reply, Request, Transport, TransportError

from issue_updater.errors import ConnectivityError

logger = logging.getLogger(__name__)

SOAP_FAULT_STATUS = 500


def is_soap_envelope(content: bytes) -> bool:
    """Check whether a response body is a SOAP envelope."""
    if not content.strip():
        return False
    try:
        document = Parser().parse(string=content)
    except SAXException:
        return False
    root = document.root()
    return root is not None and root.name == "Envelope"


class HttpxTransport(Transport):
    """Blocking suds transport using a shared httpx client."""

    def __init__(self, timeout: float, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used to plug in test doubles).
        """
        Transport.__init__(self)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=True)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request(self, method: str, request: Request) -> httpx.Response:
        try:
            return self.client.request(
                method,
                request.url,
                content=request.message,
                headers=request.headers,
            )
        except httpx.TimeoutException as e:
            raise ConnectivityError(f"Timeout requesting {request.url}") from e
        except httpx.HTTPError as e:
            raise ConnectivityError(f"Unable to connect to {request.url}: {e}") from e

    def open(self, request: Request) -> io.BytesIO:
        """Fetch a document (the WSDL or an imported schema)."""
        logger.debug(f"Fetching {request.url}")
        response = self._request("GET", request)
        if response.status_code >= 400:
            raise ConnectivityError(f"JIRA returned HTTP {response.status_code} for {request.url}")
        return io.BytesIO(response.content)

    def send(self, request: Request) -> Reply:
        """Post a SOAP envelope and return the reply."""
        response = self._request("POST", request)

        if response.status_code == SOAP_FAULT_STATUS and is_soap_envelope(response.content):
            raise TransportError(
                f"JIRA SOAP service returned HTTP {response.status_code}",
                response.status_code,
                io.BytesIO(response.content),
            )
        if response.status_code >= 400:
            raise ConnectivityError(f"JIRA SOAP service returned HTTP {response.status_code} for {request.url}")

        return Reply(response.status_code, dict(response.headers), response.content)
