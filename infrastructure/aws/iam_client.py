"""AWS IAM client for bastion roles and instance profiles."""

import asyncio
import json
from typing import List, Dict, Any, Optional

from .errors import get_error_code, is_not_found, translate_error
from .session_manager import AWSSessionManager
from core.utils.logger import get_infrastructure_logger

BASTION_IAM_PATH = "/basti/"
SSM_MANAGED_POLICY_ARN = "arn:aws:iam::aws:policy/AmazonSSMManagedInstanceCore"

EC2_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


class IAMClient:
    """AWS IAM client wrapper for bastion identities."""

    def __init__(self, session_manager: AWSSessionManager):
        self.logger = get_infrastructure_logger(__name__)
        self._session_manager = session_manager
        self._client = None

    def _ensure_client(self) -> None:
        if self._client is None:
            self._client = self._session_manager.client("iam")

    async def _call(self, method: str, **params) -> Dict[str, Any]:
        self._ensure_client()
        return await asyncio.to_thread(getattr(self._client, method), **params)

    async def _paginate(self, method: str, result_key: str, **params) -> List[Any]:
        self._ensure_client()

        def collect() -> List[Any]:
            items = []
            paginator = self._client.get_paginator(method)
            for page in paginator.paginate(**params):
                items.extend(page.get(result_key, []))
            return items

        return await asyncio.to_thread(collect)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Centralized error handling and logging."""
        if is_not_found(error):
            self.logger.debug(f"{operation} failed: {get_error_code(error)}")
        else:
            self.logger.error(f"{operation} failed: {get_error_code(error) or str(error)}")
        raise translate_error(operation, error)

    async def create_bastion_role(self, role_name: str, tags: List[Dict[str, str]]) -> str:
        """Create a role EC2 can assume and grant it SSM connectivity.

        Returns:
            The role id
        """
        try:
            response = await self._call(
                "create_role",
                RoleName=role_name,
                Path=BASTION_IAM_PATH,
                AssumeRolePolicyDocument=json.dumps(EC2_TRUST_POLICY),
                Description="Basti bastion instance role",
                Tags=tags,
            )
            await self._call(
                "attach_role_policy", RoleName=role_name, PolicyArn=SSM_MANAGED_POLICY_ARN
            )
            return response["Role"]["RoleId"]
        except Exception as e:
            self._handle_error(f"creating IAM role {role_name}", e)

    async def create_instance_profile(
        self, profile_name: str, role_name: str, tags: List[Dict[str, str]]
    ) -> str:
        """Create an instance profile holding the role.

        Returns:
            The instance profile id
        """
        try:
            response = await self._call(
                "create_instance_profile",
                InstanceProfileName=profile_name,
                Path=BASTION_IAM_PATH,
                Tags=tags,
            )
            await self._call(
                "add_role_to_instance_profile",
                InstanceProfileName=profile_name,
                RoleName=role_name,
            )
            return response["InstanceProfile"]["InstanceProfileId"]
        except Exception as e:
            self._handle_error(f"creating instance profile {profile_name}", e)

    async def list_roles(self) -> List[Dict[str, Any]]:
        """List roles under the bastion path."""
        try:
            return await self._paginate("list_roles", "Roles", PathPrefix=BASTION_IAM_PATH)
        except Exception as e:
            self._handle_error("listing IAM roles", e)

    async def list_role_tags(self, role_name: str) -> List[Dict[str, str]]:
        try:
            return await self._paginate("list_role_tags", "Tags", RoleName=role_name)
        except Exception as e:
            self._handle_error(f"listing tags of role {role_name}", e)

    async def list_instance_profiles(self) -> List[Dict[str, Any]]:
        """List instance profiles under the bastion path."""
        try:
            return await self._paginate(
                "list_instance_profiles", "InstanceProfiles", PathPrefix=BASTION_IAM_PATH
            )
        except Exception as e:
            self._handle_error("listing instance profiles", e)

    async def list_instance_profile_tags(self, profile_name: str) -> List[Dict[str, str]]:
        try:
            return await self._paginate(
                "list_instance_profile_tags", "Tags", InstanceProfileName=profile_name
            )
        except Exception as e:
            self._handle_error(f"listing tags of instance profile {profile_name}", e)

    async def get_instance_profile(self, profile_name: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self._call(
                "get_instance_profile", InstanceProfileName=profile_name
            )
            return response["InstanceProfile"]
        except Exception as e:
            self._handle_error(f"reading instance profile {profile_name}", e)

    async def delete_instance_profile(self, profile_name: str) -> None:
        """Remove the profile's roles, then delete the profile."""
        try:
            profile = await self.get_instance_profile(profile_name)
            for role in profile.get("Roles", []):
                await self._call(
                    "remove_role_from_instance_profile",
                    InstanceProfileName=profile_name,
                    RoleName=role["RoleName"],
                )
            await self._call("delete_instance_profile", InstanceProfileName=profile_name)
        except Exception as e:
            self._handle_error(f"deleting instance profile {profile_name}", e)

    async def delete_role(self, role_name: str) -> None:
        """Detach and delete the role's policies, release it from profiles, delete it."""
        try:
            attached = await self._paginate(
                "list_attached_role_policies", "AttachedPolicies", RoleName=role_name
            )
            for policy in attached:
                await self._call(
                    "detach_role_policy", RoleName=role_name, PolicyArn=policy["PolicyArn"]
                )

            inline = await self._paginate("list_role_policies", "PolicyNames", RoleName=role_name)
            for policy_name in inline:
                await self._call(
                    "delete_role_policy", RoleName=role_name, PolicyName=policy_name
                )

            profiles = await self._paginate(
                "list_instance_profiles_for_role", "InstanceProfiles", RoleName=role_name
            )
            for profile in profiles:
                await self._call(
                    "remove_role_from_instance_profile",
                    InstanceProfileName=profile["InstanceProfileName"],
                    RoleName=role_name,
                )

            await self._call("delete_role", RoleName=role_name)
        except Exception as e:
            self._handle_error(f"deleting IAM role {role_name}", e)
