"""Managed resource cleanup service implementation."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.exceptions import ResourceNotFoundError, get_error_detail
from core.interfaces.cleanup_interface import ICleanupService
from core.interfaces.prompter_interface import IPrompter
from core.models.config import CleanupConfig
from core.models.managed_resources import (
    DELETION_STAGES,
    CleanupOutcome,
    CleanupReport,
    DeletionResult,
    ManagedResourceGroup,
    ManagedResources,
)
from core.models.prompt import ChoiceGroup, PromptChoice
from core.models.target import TargetKind
from core.utils.retry import retry_with_backoff
from core.utils.tags import TARGET_TAG_KEY, is_managed, managed_filters, tags_to_dict
from infrastructure.aws.ec2_client import LIVE_INSTANCE_STATES, EC2Client
from infrastructure.aws.errors import get_error_code
from infrastructure.aws.iam_client import IAMClient
from infrastructure.aws.rds_client import RDSClient

NOTHING_TO_CLEAN_MESSAGE = "No Basti-managed resources found in your account"
SUMMARY_TITLE = "The following resources will be deleted:"
CONFIRM_MESSAGE = "Confirm cleanup?"


def is_dependency_violation(error: BaseException) -> bool:
    """A resource is still referenced by something that is going away."""
    return get_error_code(error) == "DependencyViolation"


class CleanupService(ICleanupService):
    """Discovers managed resources by tag and deletes them in dependency order."""

    def __init__(
        self,
        ec2_client: EC2Client,
        iam_client: IAMClient,
        rds_client: RDSClient,
        prompter: IPrompter,
        cleanup_config: Optional[CleanupConfig] = None,
    ):
        self.ec2_client = ec2_client
        self.iam_client = iam_client
        self.rds_client = rds_client
        self.prompter = prompter
        self.config = cleanup_config or CleanupConfig()
        self.last_report: Optional[CleanupReport] = None
        self._target_locks: Dict[str, asyncio.Lock] = {}
        self.logger = logging.getLogger(__name__)

        self._listers: Dict[ManagedResourceGroup, Callable[[], Awaitable[List[str]]]] = {
            ManagedResourceGroup.ACCESS_SECURITY_GROUPS: lambda: self._list_security_groups(
                ManagedResourceGroup.ACCESS_SECURITY_GROUPS
            ),
            ManagedResourceGroup.BASTION_SECURITY_GROUPS: lambda: self._list_security_groups(
                ManagedResourceGroup.BASTION_SECURITY_GROUPS
            ),
            ManagedResourceGroup.BASTION_INSTANCES: self._list_instances,
            ManagedResourceGroup.BASTION_INSTANCE_PROFILES: self._list_instance_profiles,
            ManagedResourceGroup.BASTION_ROLES: self._list_roles,
        }
        self._deleters: Dict[ManagedResourceGroup, Callable[[str], Awaitable[None]]] = {
            ManagedResourceGroup.ACCESS_SECURITY_GROUPS: self._delete_access_security_group,
            ManagedResourceGroup.BASTION_SECURITY_GROUPS: self._delete_security_group,
            ManagedResourceGroup.BASTION_INSTANCES: self._delete_instance,
            ManagedResourceGroup.BASTION_INSTANCE_PROFILES: self.iam_client.delete_instance_profile,
            ManagedResourceGroup.BASTION_ROLES: self.iam_client.delete_role,
        }

    async def list_managed_resources(self) -> ManagedResources:
        """List every managed resource group concurrently.

        A group that cannot be listed is reported as a warning and left empty.
        """
        groups = list(ManagedResourceGroup)
        results = await asyncio.gather(
            *(self._listers[group]() for group in groups), return_exceptions=True
        )

        resources = ManagedResources()
        for group, result in zip(groups, results):
            if isinstance(result, Exception):
                message = f"Could not list {group.title.rstrip(':').lower()}: {get_error_detail(result)}"
                self.logger.warning(message)
                self.prompter.warn(message)
                continue
            resources[group] = result

        self.logger.info(f"Found {len(resources)} managed resources")
        self.logger.debug(f"Managed resources: {resources.to_dict()}")
        return resources

    def confirm_cleanup(self, resources: ManagedResources) -> bool:
        self._show_resources(resources)
        return self.prompter.confirm(CONFIRM_MESSAGE, default=True)

    async def confirm_and_delete(self, resources: ManagedResources) -> CleanupReport:
        """Delete the resources stage by stage.

        A stage starts only after the previous one finished. Deletions within
        a stage run concurrently and a failure never stops the others.
        """
        report = CleanupReport()
        semaphore = asyncio.Semaphore(self.config.max_concurrent)

        for stage in DELETION_STAGES:
            for group in stage:
                identifiers = resources[group]
                if not identifiers:
                    continue

                self.logger.info(f"Deleting {len(identifiers)} {group.value}")
                tasks = [
                    self._delete_one(group, identifier, semaphore)
                    for identifier in identifiers
                ]
                results = await asyncio.gather(*tasks, return_exceptions=True)

                for identifier, result in zip(identifiers, results):
                    if isinstance(result, Exception):
                        result = DeletionResult(
                            group, identifier, error_message=get_error_detail(result)
                        )
                    report.add(result)

        self.last_report = report
        return report

    async def run_cleanup(self, auto_confirm: bool = False) -> CleanupOutcome:
        resources = await self.list_managed_resources()

        if resources.is_empty:
            self.prompter.info(NOTHING_TO_CLEAN_MESSAGE)
            return CleanupOutcome.NOTHING_TO_CLEAN

        if auto_confirm:
            self._show_resources(resources)
        elif not self.confirm_cleanup(resources):
            self.logger.info("Cleanup declined")
            return CleanupOutcome.DECLINED

        report = await self.confirm_and_delete(resources)

        for result in report.failed:
            self.prompter.warn(f"Could not delete {result.resource_id}: {result.error_message}")
        self.prompter.info(
            f"Deleted {len(report.succeeded)} of {len(report.results)} resources"
        )
        return report.outcome

    def _show_resources(self, resources: ManagedResources) -> None:
        groups = [
            ChoiceGroup(
                group.title,
                [PromptChoice(identifier, identifier) for identifier in resources[group]],
            )
            for group in resources.non_empty_groups()
        ]
        self.prompter.show_summary(SUMMARY_TITLE, groups)

    async def _delete_one(
        self, group: ManagedResourceGroup, identifier: str, semaphore: asyncio.Semaphore
    ) -> DeletionResult:
        async with semaphore:
            try:
                await self._deleters[group](identifier)
                self.logger.info(f"Deleted {identifier}")
                return DeletionResult(group, identifier, success=True)
            except ResourceNotFoundError:
                self.logger.info(f"{identifier} was already deleted")
                return DeletionResult(group, identifier, success=True)
            except Exception as e:
                self.logger.error(f"Failed to delete {identifier}: {get_error_detail(e)}")
                return DeletionResult(
                    group, identifier, error_message=get_error_detail(e)
                )

    async def _list_security_groups(self, group: ManagedResourceGroup) -> List[str]:
        security_groups = await self.ec2_client.describe_security_groups(
            filters=managed_filters(group.value)
        )
        return [
            security_group["GroupId"]
            for security_group in security_groups
            if is_managed(security_group.get("Tags"))
        ]

    async def _list_instances(self) -> List[str]:
        filters = managed_filters(ManagedResourceGroup.BASTION_INSTANCES.value) + [
            {"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES}
        ]
        instances = await self.ec2_client.describe_instances(filters=filters)
        return [
            instance["InstanceId"]
            for instance in instances
            if is_managed(instance.get("Tags"))
            and instance.get("State", {}).get("Name") != "terminated"
        ]

    async def _list_instance_profiles(self) -> List[str]:
        profiles = await self.iam_client.list_instance_profiles()
        names = [profile["InstanceProfileName"] for profile in profiles]
        tags = await asyncio.gather(
            *(self.iam_client.list_instance_profile_tags(name) for name in names),
            return_exceptions=True,
        )
        return self._managed_names(names, tags)

    async def _list_roles(self) -> List[str]:
        roles = await self.iam_client.list_roles()
        names = [role["RoleName"] for role in roles]
        tags = await asyncio.gather(
            *(self.iam_client.list_role_tags(name) for name in names), return_exceptions=True
        )
        return self._managed_names(names, tags)

    def _managed_names(self, names: List[str], tags: List[Any]) -> List[str]:
        """Names whose tags mark them as managed.

        A resource deleted between listing and the tag lookup is skipped.
        """
        managed = []
        for name, resource_tags in zip(names, tags):
            if isinstance(resource_tags, ResourceNotFoundError):
                self.logger.debug(f"{name} disappeared while listing")
                continue
            if isinstance(resource_tags, Exception):
                raise resource_tags
            if is_managed(resource_tags):
                managed.append(name)
        return managed

    async def _delete_access_security_group(self, group_id: str) -> None:
        """Detach the group from the target it was created for, then delete it."""
        security_groups = await self.ec2_client.describe_security_groups(group_ids=[group_id])
        tags = tags_to_dict(security_groups[0].get("Tags")) if security_groups else {}

        target_ref = tags.get(TARGET_TAG_KEY)
        if target_ref:
            # Detaching rewrites the target's whole group list
            async with self._target_locks.setdefault(target_ref, asyncio.Lock()):
                await self._detach_from_target(group_id, target_ref)

        await self._delete_security_group(group_id)

    async def _detach_from_target(self, group_id: str, target_ref: str) -> None:
        kind, _, identifier = target_ref.partition(":")

        try:
            if kind == TargetKind.DB_INSTANCE.value:
                db_resource = await self.rds_client.get_db_instance(identifier)
                set_security_groups = self.rds_client.set_db_instance_security_groups
            elif kind == TargetKind.DB_CLUSTER.value:
                db_resource = await self.rds_client.get_db_cluster(identifier)
                set_security_groups = self.rds_client.set_db_cluster_security_groups
            else:
                self.logger.warning(f"Unknown target {target_ref!r} on {group_id}")
                return
        except ResourceNotFoundError:
            self.logger.info(f"Target {target_ref} no longer exists")
            return

        attached = [
            group["VpcSecurityGroupId"]
            for group in db_resource.get("VpcSecurityGroups", [])
            if group.get("Status") != "removing"
        ]
        if group_id not in attached:
            return

        remaining = [attached_id for attached_id in attached if attached_id != group_id]
        if not remaining:
            self.logger.warning(f"{group_id} is the only security group of {target_ref}")
            return

        self.logger.info(f"Detaching {group_id} from {target_ref}")
        await set_security_groups(identifier, remaining)

    async def _delete_security_group(self, group_id: str) -> None:
        delete = retry_with_backoff(
            should_retry=is_dependency_violation,
            tries=self.config.dependency_retry_attempts,
            base_delay=self.config.dependency_retry_delay_seconds,
            max_delay=30.0,
            jitter=False,
            logger=self.logger,
        )(self.ec2_client.delete_security_group)
        await delete(group_id)

    async def _delete_instance(self, instance_id: str) -> None:
        await self.ec2_client.terminate_instances([instance_id])
        if self.config.wait_for_termination:
            await self.ec2_client.wait_for_instance_state(
                [instance_id],
                "terminated",
                max_wait_time=self.config.termination_timeout_seconds,
            )
