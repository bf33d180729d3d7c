"""Target resolver service implementation."""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

from core.exceptions import AccessDeniedError, get_error_detail
from core.interfaces.prompter_interface import IPrompter
from core.interfaces.target_resolver_interface import ITargetResolver
from core.models.prompt import ChoiceGroup, PromptChoice
from core.models.target import (
    ConnectionTarget,
    CustomTarget,
    DbClusterTarget,
    DbInstanceTarget,
    TargetIntent,
    TargetKind,
    is_cluster_member,
)
from infrastructure.aws.rds_client import RDSClient

SELECT_TARGET_MESSAGE = "Select target to connect to"
INSTANCES_GROUP_TITLE = "Database instances:"
CLUSTERS_GROUP_TITLE = "Database clusters:"
CUSTOM_CHOICE_LABEL = "Custom"
CUSTOM_CHOICE = (TargetKind.CUSTOM, None)


class TargetResolverService(ITargetResolver):
    """Resolves what the user wants to reach into a typed connection target."""

    def __init__(self, rds_client: RDSClient, prompter: IPrompter):
        self.rds_client = rds_client
        self.prompter = prompter
        self.logger = logging.getLogger(__name__)

    async def resolve(self, intent: TargetIntent) -> ConnectionTarget:
        """Resolve an explicit or interactive intent into a connection target."""
        errors = intent.validate()
        if errors:
            raise ValueError("; ".join(errors))

        if intent.is_interactive:
            return await self._resolve_interactive()

        if intent.kind == TargetKind.DB_INSTANCE:
            db_instance = await self.rds_client.get_db_instance(intent.identifier)
            return DbInstanceTarget.from_aws(db_instance)

        if intent.kind == TargetKind.DB_CLUSTER:
            db_cluster = await self.rds_client.get_db_cluster(intent.identifier)
            return await self._build_cluster_target(db_cluster)

        return CustomTarget.create(
            host=intent.custom_host,
            port=intent.custom_port,
            vpc_id=intent.custom_vpc_id,
            subnet_id=intent.custom_subnet_id,
        )

    async def list_targets(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """List DB instances and clusters concurrently.

        A category that cannot be listed is reported as a warning and
        yields an empty list, so listing alone never fails resolution.
        """
        self.prompter.info("Retrieving connection targets")

        categories = [
            ("DB instances", self.rds_client.describe_db_instances()),
            ("DB clusters", self.rds_client.describe_db_clusters()),
        ]
        results = await asyncio.gather(
            *(call for _, call in categories), return_exceptions=True
        )

        listed = []
        for (resource_name, _), result in zip(categories, results):
            if isinstance(result, Exception):
                warning = self._listing_warning(result)
                self.logger.warning(f"Listing {resource_name} failed: {warning}")
                self.prompter.warn(f"{resource_name}: {warning}")
                listed.append([])
            else:
                listed.append(result or [])

        return listed[0], listed[1]

    async def _resolve_interactive(self) -> ConnectionTarget:
        instances, clusters = await self.list_targets()
        groups = self._build_choice_groups(instances, clusters)

        kind, resource = self.prompter.select(SELECT_TARGET_MESSAGE, groups)

        if kind == TargetKind.DB_INSTANCE:
            return DbInstanceTarget.from_aws(resource)
        if kind == TargetKind.DB_CLUSTER:
            return await self._build_cluster_target(resource)
        return self._prompt_custom_target()

    def _build_choice_groups(
        self, instances: List[Dict[str, Any]], clusters: List[Dict[str, Any]]
    ) -> List[ChoiceGroup]:
        groups = []
        # Aurora members are reached through their cluster entry
        instances = [db_instance for db_instance in instances if not is_cluster_member(db_instance)]
        if instances:
            groups.append(
                ChoiceGroup(
                    INSTANCES_GROUP_TITLE,
                    [
                        PromptChoice(
                            db_instance["DBInstanceIdentifier"],
                            (TargetKind.DB_INSTANCE, db_instance),
                        )
                        for db_instance in instances
                    ],
                )
            )
        if clusters:
            groups.append(
                ChoiceGroup(
                    CLUSTERS_GROUP_TITLE,
                    [
                        PromptChoice(
                            db_cluster["DBClusterIdentifier"],
                            (TargetKind.DB_CLUSTER, db_cluster),
                        )
                        for db_cluster in clusters
                    ],
                )
            )
        # Custom is always offered, last and untitled
        groups.append(ChoiceGroup(None, [PromptChoice(CUSTOM_CHOICE_LABEL, CUSTOM_CHOICE)]))
        return groups

    def _prompt_custom_target(self) -> CustomTarget:
        host = self.prompter.ask_text("Target host")
        port = self.prompter.ask_int("Target port")
        vpc_id = self.prompter.ask_text("VPC id the target lives in")
        return CustomTarget.create(host=host, port=port, vpc_id=vpc_id)

    async def _build_cluster_target(self, db_cluster: Dict[str, Any]) -> DbClusterTarget:
        subnet_group_name = db_cluster.get("DBSubnetGroup")
        subnet_group = {}
        if subnet_group_name:
            subnet_group = await self.rds_client.get_db_subnet_group(subnet_group_name)
        return DbClusterTarget.from_aws(db_cluster, subnet_group)

    @staticmethod
    def _listing_warning(error: Exception) -> str:
        if isinstance(error, AccessDeniedError):
            return "Access denied by IAM"
        return f"Unexpected error: {get_error_detail(error)}"
