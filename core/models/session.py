"""SSM session data models."""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

PORT_FORWARDING_DOCUMENT = "AWS-StartPortForwardingSessionToRemoteHost"


@dataclass(frozen=True)
class SsmSessionRequest:
    """Parameters of a port-forwarding StartSession call."""

    target: str
    host: str
    port_number: int
    local_port_number: int
    document_name: str = PORT_FORWARDING_DOCUMENT

    def to_aws(self) -> Dict[str, Any]:
        """Request in the shape expected by ``ssm.start_session``."""
        return {
            "Target": self.target,
            "DocumentName": self.document_name,
            "Parameters": {
                "host": [self.host],
                "portNumber": [str(self.port_number)],
                "localPortNumber": [str(self.local_port_number)],
            },
        }


@dataclass(frozen=True)
class SsmSessionResponse:
    """Validated StartSession response."""

    session_id: str
    token_value: str
    stream_url: str

    def to_aws(self) -> Dict[str, str]:
        return {
            "SessionId": self.session_id,
            "TokenValue": self.token_value,
            "StreamUrl": self.stream_url,
        }


@dataclass(frozen=True)
class Endpoint:
    """Components of a resolved service endpoint."""

    protocol: str
    hostname: str
    port: Optional[int] = None
    path: str = ""

    @classmethod
    def from_url(cls, url: str) -> "Endpoint":
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError(f"Invalid endpoint URL: {url!r}")
        return cls(
            protocol=parsed.scheme,
            hostname=parsed.hostname,
            port=parsed.port,
            path=parsed.path,
        )

    @property
    def url(self) -> str:
        port_part = f":{self.port}" if self.port is not None else ""
        return f"{self.protocol}://{self.hostname}{port_part}{self.path}"


@dataclass(frozen=True)
class SsmSessionDescriptor:
    """Everything needed to open the local end of a port-forwarding session."""

    request: SsmSessionRequest
    response: SsmSessionResponse
    region: str
    endpoint: str

    def plugin_arguments(self, profile: Optional[str] = None) -> List[str]:
        """Positional arguments for ``session-manager-plugin``.

        Order: response, region, operation, profile, request, endpoint.
        """
        return [
            json.dumps(self.response.to_aws()),
            self.region,
            "StartSession",
            profile or "",
            json.dumps(self.request.to_aws()),
            self.endpoint,
        ]
