"""AWS RDS client for DB instance and cluster lookups."""

import asyncio
from typing import List, Dict, Any

from .errors import get_error_code, is_not_found, translate_error
from .session_manager import AWSSessionManager
from core.exceptions import ResourceNotFoundError
from core.utils.logger import get_infrastructure_logger


class RDSClient:
    """AWS RDS client wrapper."""

    def __init__(self, session_manager: AWSSessionManager):
        self.logger = get_infrastructure_logger(__name__)
        self._session_manager = session_manager
        self._client = None

    def _ensure_client(self) -> None:
        if self._client is None:
            self._client = self._session_manager.client("rds")

    def _handle_error(self, operation: str, error: Exception, resource: str = "") -> None:
        """Centralized error handling and logging."""
        if is_not_found(error):
            self.logger.debug(f"{operation} failed: {get_error_code(error)}")
        else:
            self.logger.error(f"{operation} failed: {get_error_code(error) or str(error)}")
        raise translate_error(operation, error, resource)

    async def _paginate(self, method: str, result_key: str, **params) -> List[Dict[str, Any]]:
        self._ensure_client()

        def collect() -> List[Dict[str, Any]]:
            items = []
            paginator = self._client.get_paginator(method)
            for page in paginator.paginate(**params):
                items.extend(page.get(result_key, []))
            return items

        return await asyncio.to_thread(collect)

    async def describe_db_instances(self) -> List[Dict[str, Any]]:
        """List all DB instances in the region."""
        try:
            return await self._paginate("describe_db_instances", "DBInstances")
        except Exception as e:
            self._handle_error("listing DB instances", e)

    async def describe_db_clusters(self) -> List[Dict[str, Any]]:
        """List all DB clusters in the region."""
        try:
            return await self._paginate("describe_db_clusters", "DBClusters")
        except Exception as e:
            self._handle_error("listing DB clusters", e)

    async def get_db_instance(self, identifier: str) -> Dict[str, Any]:
        """Describe a single DB instance."""
        try:
            instances = await self._paginate(
                "describe_db_instances", "DBInstances", DBInstanceIdentifier=identifier
            )
            if not instances:
                raise ResourceNotFoundError(f"DB instance {identifier}")
            return instances[0]
        except Exception as e:
            self._handle_error(
                f"describing DB instance {identifier}", e, f"DB instance {identifier}"
            )

    async def get_db_cluster(self, identifier: str) -> Dict[str, Any]:
        """Describe a single DB cluster."""
        try:
            clusters = await self._paginate(
                "describe_db_clusters", "DBClusters", DBClusterIdentifier=identifier
            )
            if not clusters:
                raise ResourceNotFoundError(f"DB cluster {identifier}")
            return clusters[0]
        except Exception as e:
            self._handle_error(
                f"describing DB cluster {identifier}", e, f"DB cluster {identifier}"
            )

    async def get_db_subnet_group(self, name: str) -> Dict[str, Any]:
        """Describe a DB subnet group by name."""
        try:
            groups = await self._paginate(
                "describe_db_subnet_groups", "DBSubnetGroups", DBSubnetGroupName=name
            )
            return groups[0] if groups else {}
        except Exception as e:
            self._handle_error(f"describing DB subnet group {name}", e)

    async def set_db_instance_security_groups(
        self, identifier: str, security_group_ids: List[str]
    ) -> None:
        """Replace the VPC security groups of a DB instance."""
        try:
            self._ensure_client()
            await asyncio.to_thread(
                self._client.modify_db_instance,
                DBInstanceIdentifier=identifier,
                VpcSecurityGroupIds=security_group_ids,
                ApplyImmediately=True,
            )
        except Exception as e:
            self._handle_error(f"modifying DB instance {identifier}", e)

    async def set_db_cluster_security_groups(
        self, identifier: str, security_group_ids: List[str]
    ) -> None:
        """Replace the VPC security groups of a DB cluster."""
        try:
            self._ensure_client()
            await asyncio.to_thread(
                self._client.modify_db_cluster,
                DBClusterIdentifier=identifier,
                VpcSecurityGroupIds=security_group_ids,
                ApplyImmediately=True,
            )
        except Exception as e:
            self._handle_error(f"modifying DB cluster {identifier}", e)
