"""Bastion provisioner service implementation."""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from core.exceptions import OperationError, ProvisioningTimeoutError
from core.interfaces.bastion_provisioner_interface import IBastionProvisioner
from core.interfaces.prompter_interface import IPrompter
from core.models.bastion import EC2_STATE_MAPPING, BastionDescriptor, BastionState
from core.models.config import BastionConfig
from core.models.managed_resources import ManagedResourceGroup
from core.models.target import ConnectionTarget, TargetKind
from core.utils.retry import retry_with_backoff
from core.utils.tags import (
    TARGET_TAG_KEY,
    VPC_ID_TAG_KEY,
    access_resource_name,
    bastion_resource_name,
    ec2_tag_specifications,
    get_bastion_id,
    is_managed,
    managed_filters,
    managed_tags,
    to_aws_tags,
)
from infrastructure.aws.ec2_client import EC2Client
from infrastructure.aws.errors import get_error_code
from infrastructure.aws.iam_client import IAMClient
from infrastructure.aws.rds_client import RDSClient
from infrastructure.aws.ssm_client import SSMClient

REUSABLE_INSTANCE_STATES = ["pending", "running"]


def new_resource_id() -> str:
    """Short random id used in resource names."""
    return uuid.uuid4().hex[:8]


def is_profile_propagation_error(error: BaseException) -> bool:
    """EC2 rejects a freshly created instance profile until IAM propagates it."""
    return (
        get_error_code(error) == "InvalidParameterValue"
        and "iamInstanceProfile" in str(error)
    )


def group_admits(security_group: Dict[str, Any], source_group_id: str, port: int) -> bool:
    """Whether a security group admits TCP traffic from another group on a port."""
    for permission in security_group.get("IpPermissions", []):
        protocol = permission.get("IpProtocol")
        if protocol not in ("tcp", "-1"):
            continue
        if protocol == "tcp" and not (
            permission.get("FromPort", 0) <= port <= permission.get("ToPort", 65535)
        ):
            continue
        if any(
            pair.get("GroupId") == source_group_id
            for pair in permission.get("UserIdGroupPairs", [])
        ):
            return True
    return False


class BastionProvisionerService(IBastionProvisioner):
    """Reuses or provisions the bastion instance a target is reached through.

    A managed bastion is compatible with a target when it is pending or
    running in the target's VPC. Reachability of the target itself is
    granted separately by ensure_target_access.
    """

    def __init__(
        self,
        ec2_client: EC2Client,
        iam_client: IAMClient,
        ssm_client: SSMClient,
        rds_client: RDSClient,
        bastion_config: BastionConfig,
        prompter: Optional[IPrompter] = None,
    ):
        self.ec2_client = ec2_client
        self.iam_client = iam_client
        self.ssm_client = ssm_client
        self.rds_client = rds_client
        self.config = bastion_config
        self.prompter = prompter
        self.logger = logging.getLogger(__name__)

    async def ensure_bastion(self, target: ConnectionTarget) -> BastionDescriptor:
        if not target.vpc_id:
            raise OperationError(
                "retrieving bastion", f"the VPC of {target.display_name} is unknown"
            )

        try:
            existing = await self.find_compatible_bastion(target.vpc_id)
        except Exception as e:
            raise OperationError.from_error("retrieving bastion", e) from e

        if existing:
            self.logger.info(
                f"Reusing bastion {existing.bastion_id} ({existing.instance_id}) "
                f"in {existing.vpc_id}"
            )
            try:
                if not existing.is_ready or not await self.ssm_client.is_instance_online(
                    existing.instance_id
                ):
                    await self.wait_until_ready(existing.instance_id)
            except Exception as e:
                raise OperationError.from_error("waiting for bastion", e) from e
            existing.mark_ready()
            return existing

        return await self.create_bastion(target)

    async def find_compatible_bastion(self, vpc_id: str) -> Optional[BastionDescriptor]:
        """Return the oldest pending or running managed bastion in the VPC."""
        filters = managed_filters(ManagedResourceGroup.BASTION_INSTANCES.value) + [
            {"Name": f"tag:{VPC_ID_TAG_KEY}", "Values": [vpc_id]},
            {"Name": "instance-state-name", "Values": REUSABLE_INSTANCE_STATES},
        ]
        instances = await self.ec2_client.describe_instances(filters=filters)

        compatible = [
            instance
            for instance in instances
            if is_managed(instance.get("Tags"))
            and instance.get("VpcId") == vpc_id
            and instance.get("State", {}).get("Name") in REUSABLE_INSTANCE_STATES
            and get_bastion_id(instance.get("Tags"))
        ]
        if not compatible:
            return None

        compatible.sort(key=lambda instance: str(instance.get("LaunchTime", "")))
        return await self._descriptor_from_instance(compatible[0])

    async def create_bastion(self, target: ConnectionTarget) -> BastionDescriptor:
        """Provision a bastion in the target's VPC, tagging each resource as it is created."""
        bastion_id = new_resource_id()
        name = bastion_resource_name(bastion_id)
        vpc_id = target.vpc_id

        self.logger.info(f"Provisioning bastion {bastion_id} in {vpc_id}")

        try:
            descriptor = BastionDescriptor(
                bastion_id=bastion_id,
                vpc_id=vpc_id,
                region=await self.ssm_client.region.get(),
                role_name=name,
                instance_profile_name=name,
            )

            descriptor.security_group_id = await self.ec2_client.create_security_group(
                name=name,
                description="Basti bastion security group",
                vpc_id=vpc_id,
                tag_specifications=ec2_tag_specifications(
                    "security-group",
                    self._tags(ManagedResourceGroup.BASTION_SECURITY_GROUPS, name, bastion_id, vpc_id),
                ),
            )

            await self.iam_client.create_bastion_role(
                name,
                to_aws_tags(
                    self._tags(ManagedResourceGroup.BASTION_ROLES, name, bastion_id, vpc_id)
                ),
            )
            await self.iam_client.create_instance_profile(
                name,
                name,
                to_aws_tags(
                    self._tags(
                        ManagedResourceGroup.BASTION_INSTANCE_PROFILES, name, bastion_id, vpc_id
                    )
                ),
            )

            image_id = await self.ssm_client.get_parameter(self.config.ami_parameter)
            descriptor.subnet_id = await self.select_subnet(target)

            run_instance = retry_with_backoff(
                should_retry=is_profile_propagation_error,
                tries=self.config.run_instances_attempts,
                base_delay=self.config.run_instances_retry_delay_seconds,
                jitter=False,
                logger=self.logger,
            )(self.ec2_client.run_instance)

            instance = await run_instance(
                image_id=image_id,
                instance_type=self.config.instance_type,
                subnet_id=descriptor.subnet_id,
                security_group_ids=[descriptor.security_group_id],
                instance_profile_name=name,
                tag_specifications=ec2_tag_specifications(
                    "instance",
                    self._tags(ManagedResourceGroup.BASTION_INSTANCES, name, bastion_id, vpc_id),
                ),
            )
            descriptor.instance_id = instance["InstanceId"]
            descriptor.launch_time = instance.get("LaunchTime")

            await self.wait_until_ready(descriptor.instance_id)
        except Exception as e:
            raise OperationError.from_error("creating bastion", e, dirty=True) from e

        descriptor.mark_ready()
        self.logger.info(f"Bastion {bastion_id} ready as {descriptor.instance_id}")
        return descriptor

    async def wait_until_ready(self, instance_id: str) -> None:
        """Poll SSM until the instance reports Online.

        Raises:
            ProvisioningTimeoutError: The configured readiness timeout elapsed
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.readiness_timeout_seconds

        while True:
            if await self.ssm_client.is_instance_online(instance_id):
                return
            if loop.time() >= deadline:
                raise ProvisioningTimeoutError(
                    instance_id, self.config.readiness_timeout_seconds
                )
            self.logger.debug(f"Waiting for {instance_id} to register with SSM")
            await asyncio.sleep(self.config.poll_interval_seconds)

    async def select_subnet(self, target: ConnectionTarget) -> str:
        """Pick a subnet of the target VPC, preferring ones that map public IPs."""
        subnets = await self.ec2_client.describe_subnets(
            filters=[{"Name": "vpc-id", "Values": [target.vpc_id]}]
        )
        if not subnets:
            raise OperationError(
                "selecting bastion subnet", f"no subnets found in {target.vpc_id}"
            )

        target_subnets = set(target.placement.subnet_ids)
        subnets.sort(
            key=lambda subnet: (
                not subnet.get("MapPublicIpOnLaunch", False),
                subnet["SubnetId"] not in target_subnets,
                subnet["SubnetId"],
            )
        )
        return subnets[0]["SubnetId"]

    async def ensure_target_access(
        self, target: ConnectionTarget, bastion: BastionDescriptor
    ) -> BastionDescriptor:
        if target.kind == TargetKind.CUSTOM:
            message = (
                f"Make sure {target.host}:{target.port} accepts traffic from "
                f"security group {bastion.security_group_id}"
            )
            self.logger.warning(message)
            if self.prompter:
                self.prompter.warn(message)
            return bastion

        try:
            if await self._target_admits_bastion(target, bastion):
                self.logger.info(f"{target.display_name} already admits the bastion")
                return bastion

            access_group_id = await self._create_access_group(target, bastion)
            security_group_ids = list(target.placement.security_group_ids) + [access_group_id]

            owner_kind, owner_id = target.security_group_owner
            if owner_kind == TargetKind.DB_CLUSTER:
                await self.rds_client.set_db_cluster_security_groups(owner_id, security_group_ids)
            else:
                await self.rds_client.set_db_instance_security_groups(owner_id, security_group_ids)
        except Exception as e:
            raise OperationError.from_error(
                "granting bastion access to target", e, dirty=True
            ) from e

        target.placement.security_group_ids = security_group_ids
        bastion.access_security_group_ids.append(access_group_id)
        return bastion

    async def _target_admits_bastion(
        self, target: ConnectionTarget, bastion: BastionDescriptor
    ) -> bool:
        if not target.placement.security_group_ids:
            return False
        groups = await self.ec2_client.describe_security_groups(
            group_ids=target.placement.security_group_ids
        )
        return any(
            group_admits(group, bastion.security_group_id, target.port) for group in groups
        )

    async def _create_access_group(
        self, target: ConnectionTarget, bastion: BastionDescriptor
    ) -> str:
        name = access_resource_name(new_resource_id())
        tags = self._tags(
            ManagedResourceGroup.ACCESS_SECURITY_GROUPS,
            name,
            bastion.bastion_id,
            target.vpc_id,
        )
        owner_kind, owner_id = target.security_group_owner
        tags[TARGET_TAG_KEY] = f"{owner_kind.value}:{owner_id}"

        group_id = await self.ec2_client.create_security_group(
            name=name,
            description=f"Basti access to {target.identifier}",
            vpc_id=target.vpc_id,
            tag_specifications=ec2_tag_specifications("security-group", tags),
        )
        await self.ec2_client.authorize_ingress_from_group(
            group_id,
            bastion.security_group_id,
            target.port,
            description=f"Basti bastion {bastion.bastion_id}",
        )
        self.logger.info(f"Created access security group {group_id} for {target.display_name}")
        return group_id

    async def _descriptor_from_instance(self, instance: Dict[str, Any]) -> BastionDescriptor:
        bastion_id = get_bastion_id(instance.get("Tags"))
        name = bastion_resource_name(bastion_id)
        security_groups: List[Dict[str, Any]] = instance.get("SecurityGroups", [])
        profile_arn = instance.get("IamInstanceProfile", {}).get("Arn", "")

        return BastionDescriptor(
            bastion_id=bastion_id,
            vpc_id=instance.get("VpcId"),
            region=await self.ssm_client.region.get(),
            instance_id=instance["InstanceId"],
            subnet_id=instance.get("SubnetId"),
            role_name=name,
            instance_profile_name=profile_arn.rsplit("/", 1)[-1] if profile_arn else name,
            security_group_id=security_groups[0]["GroupId"] if security_groups else None,
            state=EC2_STATE_MAPPING.get(
                instance.get("State", {}).get("Name"), BastionState.PROVISIONING
            ),
            reused=True,
            launch_time=instance.get("LaunchTime"),
        )

    @staticmethod
    def _tags(
        group: ManagedResourceGroup, name: str, bastion_id: str, vpc_id: str
    ) -> Dict[str, str]:
        return managed_tags(group.value, name=name, bastion_id=bastion_id, vpc_id=vpc_id)
