"""Session negotiator service implementation."""

import logging
import socket
from typing import Any, Dict
from urllib.parse import urlparse

from core.exceptions import SessionResponseInvalidError
from core.interfaces.session_negotiator_interface import ISessionNegotiator
from core.models.session import (
    SsmSessionDescriptor,
    SsmSessionRequest,
    SsmSessionResponse,
)
from infrastructure.aws.ssm_client import SSMClient

STREAM_URL_SCHEMES = ("ws", "wss")
REQUIRED_RESPONSE_FIELDS = ("SessionId", "TokenValue", "StreamUrl")


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Check whether a local TCP port can be bound."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def parse_session_response(response: Dict[str, Any]) -> SsmSessionResponse:
    """Validate a StartSession response.

    Raises:
        SessionResponseInvalidError: A field is missing, empty or malformed
    """
    for field_name in REQUIRED_RESPONSE_FIELDS:
        value = response.get(field_name)
        if not isinstance(value, str) or not value.strip():
            raise SessionResponseInvalidError(f"missing or invalid {field_name}")

    session_id = response["SessionId"]
    token_value = response["TokenValue"]
    stream_url = response["StreamUrl"]

    try:
        parsed = urlparse(stream_url)
        hostname = parsed.hostname
    except ValueError:
        hostname = None
    if not hostname or parsed.scheme not in STREAM_URL_SCHEMES:
        raise SessionResponseInvalidError(f"malformed StreamUrl {stream_url!r}")

    return SsmSessionResponse(
        session_id=session_id, token_value=token_value, stream_url=stream_url
    )


class SessionNegotiatorService(ISessionNegotiator):
    """Starts port-forwarding sessions through a bastion. Single attempt, no retries."""

    def __init__(self, ssm_client: SSMClient):
        self.ssm_client = ssm_client
        self.logger = logging.getLogger(__name__)

    async def start_port_forward(
        self,
        bastion_instance_id: str,
        target_host: str,
        target_port: int,
        local_port: int,
    ) -> SsmSessionDescriptor:
        request = SsmSessionRequest(
            target=bastion_instance_id,
            host=target_host,
            port_number=target_port,
            local_port_number=local_port,
        )

        self.logger.info(
            f"Starting session via {bastion_instance_id} to "
            f"{target_host}:{target_port} on local port {local_port}"
        )
        raw_response = await self.ssm_client.start_session(request.to_aws())
        response = parse_session_response(raw_response or {})

        region = await self.ssm_client.region.get()
        endpoint = await self.ssm_client.endpoint.get()

        self.logger.debug(f"Session {response.session_id} started in {region}")
        return SsmSessionDescriptor(
            request=request,
            response=response,
            region=region,
            endpoint=endpoint.url,
        )
