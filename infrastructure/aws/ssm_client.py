"""AWS SSM client for Systems Manager operations."""

import asyncio
from typing import List, Dict, Any

from .errors import get_error_code, translate_error
from .session_manager import AWSSessionManager
from core.models.session import Endpoint
from core.utils.async_accessor import AsyncAccessor
from core.utils.logger import get_infrastructure_logger

PING_STATUS_ONLINE = "Online"


class SSMClient:
    """AWS SSM client wrapper for Systems Manager operations."""

    def __init__(self, session_manager: AWSSessionManager):
        self.logger = get_infrastructure_logger(__name__)
        self._session_manager = session_manager
        self._client = None

        self.region: AsyncAccessor[str] = AsyncAccessor(self._resolve_region)
        self.endpoint: AsyncAccessor[Endpoint] = AsyncAccessor(self._resolve_endpoint)

    def _ensure_client(self) -> None:
        if self._client is None:
            self._client = self._session_manager.client("ssm")

    def _resolve_region(self) -> str:
        self._ensure_client()
        return self._client.meta.region_name

    def _resolve_endpoint(self) -> Endpoint:
        self._ensure_client()
        return Endpoint.from_url(self._client.meta.endpoint_url)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Centralized error handling and logging."""
        self.logger.error(f"{operation} failed: {get_error_code(error) or str(error)}")
        raise translate_error(operation, error)

    async def describe_instance_information(
        self, instance_ids: List[str]
    ) -> List[Dict[str, Any]]:
        """Get SSM registration info for instances."""
        try:
            self._ensure_client()

            def collect() -> List[Dict[str, Any]]:
                instances = []
                paginator = self._client.get_paginator("describe_instance_information")
                for page in paginator.paginate(
                    Filters=[{"Key": "InstanceIds", "Values": instance_ids}]
                ):
                    instances.extend(page["InstanceInformationList"])
                return instances

            return await asyncio.to_thread(collect)

        except Exception as e:
            self._handle_error("describing SSM instance information", e)

    async def is_instance_online(self, instance_id: str) -> bool:
        """Check whether the instance's SSM agent reports Online."""
        instances = await self.describe_instance_information([instance_id])
        return any(
            info.get("InstanceId") == instance_id
            and info.get("PingStatus") == PING_STATUS_ONLINE
            for info in instances
        )

    async def get_parameter(self, name: str) -> str:
        """Read a (public or private) SSM parameter value."""
        try:
            self._ensure_client()
            response = await asyncio.to_thread(self._client.get_parameter, Name=name)
            return response["Parameter"]["Value"]
        except Exception as e:
            self._handle_error(f"reading SSM parameter {name}", e)

    async def start_session(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Start a Session Manager session."""
        try:
            self._ensure_client()
            return await asyncio.to_thread(self._client.start_session, **request)
        except Exception as e:
            self._handle_error("starting SSM session", e)
