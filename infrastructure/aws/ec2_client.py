"""AWS EC2 client for bastion instance and security group operations."""

import asyncio
from typing import List, Dict, Any, Optional
from datetime import datetime

from .errors import get_error_code, is_not_found, translate_error
from .session_manager import AWSSessionManager
from core.utils.logger import get_infrastructure_logger

LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped", "shutting-down"]


class EC2Client:
    """AWS EC2 client wrapper for bastion operations."""

    def __init__(self, session_manager: AWSSessionManager):
        self.logger = get_infrastructure_logger(__name__)
        self._session_manager = session_manager
        self._client = None

    def _ensure_client(self) -> None:
        """Ensure the EC2 client is initialized (lazy initialization)."""
        if self._client is None:
            self._client = self._session_manager.client("ec2")

    async def _call(self, method: str, **params) -> Dict[str, Any]:
        self._ensure_client()
        return await asyncio.to_thread(getattr(self._client, method), **params)

    async def _paginate(self, method: str, result_key: str, **params) -> List[Dict[str, Any]]:
        self._ensure_client()

        def collect() -> List[Dict[str, Any]]:
            items = []
            paginator = self._client.get_paginator(method)
            for page in paginator.paginate(**params):
                items.extend(page.get(result_key, []))
            return items

        return await asyncio.to_thread(collect)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Handle AWS client errors with consistent logging."""
        if is_not_found(error):
            self.logger.debug(f"{operation} failed: {get_error_code(error)}")
        else:
            self.logger.error(f"{operation} failed: {get_error_code(error) or str(error)}")
        raise translate_error(operation, error)

    async def describe_instances(
        self,
        instance_ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Describe EC2 instances with optional filtering."""
        try:
            params = {}
            if instance_ids:
                params["InstanceIds"] = instance_ids
            if filters:
                params["Filters"] = filters

            reservations = await self._paginate(
                "describe_instances", "Reservations", **params
            )
            instances = []
            for reservation in reservations:
                instances.extend(reservation["Instances"])

            return instances
        except Exception as e:
            self._handle_error("describing instances", e)

    async def run_instance(
        self,
        image_id: str,
        instance_type: str,
        subnet_id: str,
        security_group_ids: List[str],
        instance_profile_name: str,
        tag_specifications: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Launch a single instance, tagged in the same call."""
        try:
            response = await self._call(
                "run_instances",
                ImageId=image_id,
                InstanceType=instance_type,
                MinCount=1,
                MaxCount=1,
                IamInstanceProfile={"Name": instance_profile_name},
                NetworkInterfaces=[
                    {
                        "DeviceIndex": 0,
                        "SubnetId": subnet_id,
                        "Groups": security_group_ids,
                        "AssociatePublicIpAddress": True,
                    }
                ],
                MetadataOptions={"HttpTokens": "required", "HttpEndpoint": "enabled"},
                TagSpecifications=tag_specifications,
            )
            return response["Instances"][0]
        except Exception as e:
            self._handle_error("launching bastion instance", e)

    async def terminate_instances(self, instance_ids: List[str]) -> Dict[str, Any]:
        """Terminate EC2 instances."""
        try:
            response = await self._call("terminate_instances", InstanceIds=instance_ids)
            return {
                "terminating_instances": response["TerminatingInstances"],
                "timestamp": datetime.utcnow().isoformat(),
            }
        except Exception as e:
            self._handle_error("terminating instances", e)

    async def wait_for_instance_state(
        self,
        instance_ids: List[str],
        target_state: str,
        max_wait_time: int = 600,
        poll_interval: int = 15,
    ) -> None:
        """Poll until all instances reach the target state."""
        start_time = datetime.utcnow()

        while (datetime.utcnow() - start_time).total_seconds() < max_wait_time:
            instances = await self.describe_instances(instance_ids=instance_ids)
            if all(instance["State"]["Name"] == target_state for instance in instances):
                return
            await asyncio.sleep(poll_interval)

        raise TimeoutError(
            f"Instances did not reach state '{target_state}' within {max_wait_time} seconds"
        )

    async def create_security_group(
        self,
        name: str,
        description: str,
        vpc_id: str,
        tag_specifications: List[Dict[str, Any]],
    ) -> str:
        """Create a security group, tagged in the same call."""
        try:
            response = await self._call(
                "create_security_group",
                GroupName=name,
                Description=description,
                VpcId=vpc_id,
                TagSpecifications=tag_specifications,
            )
            return response["GroupId"]
        except Exception as e:
            self._handle_error(f"creating security group {name}", e)

    async def authorize_ingress_from_group(
        self, group_id: str, source_group_id: str, port: int, description: str = ""
    ) -> None:
        """Allow TCP traffic on a port from members of another security group."""
        try:
            await self._call(
                "authorize_security_group_ingress",
                GroupId=group_id,
                IpPermissions=[
                    {
                        "IpProtocol": "tcp",
                        "FromPort": port,
                        "ToPort": port,
                        "UserIdGroupPairs": [
                            {"GroupId": source_group_id, "Description": description}
                        ],
                    }
                ],
            )
        except Exception as e:
            self._handle_error(f"authorizing ingress on {group_id}", e)

    async def describe_security_groups(
        self,
        group_ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Describe security groups."""
        try:
            params = {}
            if group_ids:
                params["GroupIds"] = group_ids
            if filters:
                params["Filters"] = filters

            return await self._paginate(
                "describe_security_groups", "SecurityGroups", **params
            )
        except Exception as e:
            self._handle_error("describing security groups", e)

    async def delete_security_group(self, group_id: str) -> None:
        """Delete a security group."""
        try:
            await self._call("delete_security_group", GroupId=group_id)
        except Exception as e:
            self._handle_error(f"deleting security group {group_id}", e)

    async def describe_subnets(
        self,
        subnet_ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Describe subnets."""
        try:
            params = {}
            if subnet_ids:
                params["SubnetIds"] = subnet_ids
            if filters:
                params["Filters"] = filters

            return await self._paginate("describe_subnets", "Subnets", **params)
        except Exception as e:
            self._handle_error("describing subnets", e)
