"""Connection target data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TargetKind(Enum):
    """Kinds of connection targets."""
    DB_INSTANCE = "instance"
    DB_CLUSTER = "cluster"
    CUSTOM = "custom"


DEFAULT_ENGINE_PORTS = {
    "postgres": 5432,
    "aurora-postgresql": 5432,
    "mysql": 3306,
    "mariadb": 3306,
    "aurora-mysql": 3306,
    "aurora": 3306,
    "oracle-ee": 1521,
    "oracle-se2": 1521,
    "sqlserver-ee": 1433,
    "sqlserver-se": 1433,
    "sqlserver-ex": 1433,
    "sqlserver-web": 1433,
}


def default_port_for_engine(engine: Optional[str]) -> Optional[int]:
    """Default listener port for an RDS engine name."""
    return DEFAULT_ENGINE_PORTS.get((engine or "").lower())


def is_cluster_member(db_instance: Dict[str, Any]) -> bool:
    """Whether a ``describe_db_instances`` entry belongs to a DB cluster."""
    return bool(db_instance.get("DBClusterIdentifier"))


@dataclass
class NetworkPlacement:
    """Where a target lives in the network."""

    vpc_id: Optional[str] = None
    subnet_ids: List[str] = field(default_factory=list)
    security_group_ids: List[str] = field(default_factory=list)


@dataclass
class ConnectionTarget:
    """Base class of the connection target variants."""

    identifier: str
    host: str
    port: int
    placement: NetworkPlacement = field(default_factory=NetworkPlacement)

    kind = None

    def __post_init__(self):
        if not self.host:
            raise ValueError(f"{self.identifier}: target has no endpoint address")
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"{self.identifier}: invalid target port {self.port}")
        self.port = int(self.port)

    @property
    def display_name(self) -> str:
        return f"{self.kind.value}:{self.identifier}"

    @property
    def vpc_id(self) -> Optional[str]:
        return self.placement.vpc_id

    @property
    def security_group_owner(self) -> Tuple[TargetKind, str]:
        """The RDS resource whose security group list grants access to this target."""
        return self.kind, self.identifier


@dataclass
class DbInstanceTarget(ConnectionTarget):
    """An RDS DB instance."""

    engine: Optional[str] = None
    kind = TargetKind.DB_INSTANCE
    cluster_identifier: Optional[str] = None

    @property
    def security_group_owner(self) -> Tuple[TargetKind, str]:
        # Security groups of Aurora members are managed on their cluster
        if self.cluster_identifier:
            return TargetKind.DB_CLUSTER, self.cluster_identifier
        return self.kind, self.identifier

    @classmethod
    def from_aws(cls, db_instance: Dict[str, Any]) -> "DbInstanceTarget":
        """Build a target from a ``describe_db_instances`` entry."""
        endpoint = db_instance.get("Endpoint") or {}
        subnet_group = db_instance.get("DBSubnetGroup") or {}
        engine = db_instance.get("Engine")

        return cls(
            identifier=db_instance["DBInstanceIdentifier"],
            host=endpoint.get("Address", ""),
            port=endpoint.get("Port") or db_instance.get("DbInstancePort")
            or default_port_for_engine(engine) or 0,
            placement=NetworkPlacement(
                vpc_id=subnet_group.get("VpcId"),
                subnet_ids=[
                    subnet["SubnetIdentifier"]
                    for subnet in subnet_group.get("Subnets", [])
                ],
                security_group_ids=[
                    sg["VpcSecurityGroupId"]
                    for sg in db_instance.get("VpcSecurityGroups", [])
                ],
            ),
            engine=engine,
            cluster_identifier=db_instance.get("DBClusterIdentifier"),
        )


@dataclass
class DbClusterTarget(ConnectionTarget):
    """An RDS DB cluster, reached through its writer endpoint."""

    engine: Optional[str] = None
    kind = TargetKind.DB_CLUSTER

    @classmethod
    def from_aws(
        cls, db_cluster: Dict[str, Any], subnet_group: Optional[Dict[str, Any]] = None
    ) -> "DbClusterTarget":
        """Build a target from a ``describe_db_clusters`` entry.

        Clusters only reference their subnet group by name, so the resolved
        ``describe_db_subnet_groups`` entry is passed separately.
        """
        subnet_group = subnet_group or {}
        engine = db_cluster.get("Engine")

        return cls(
            identifier=db_cluster["DBClusterIdentifier"],
            host=db_cluster.get("Endpoint", ""),
            port=db_cluster.get("Port") or default_port_for_engine(engine) or 0,
            placement=NetworkPlacement(
                vpc_id=subnet_group.get("VpcId"),
                subnet_ids=[
                    subnet["SubnetIdentifier"]
                    for subnet in subnet_group.get("Subnets", [])
                ],
                security_group_ids=[
                    sg["VpcSecurityGroupId"]
                    for sg in db_cluster.get("VpcSecurityGroups", [])
                ],
            ),
            engine=engine,
        )


@dataclass
class CustomTarget(ConnectionTarget):
    """A user supplied host and port inside a VPC."""

    kind = TargetKind.CUSTOM

    @classmethod
    def create(
        cls, host: str, port: int, vpc_id: str, subnet_id: Optional[str] = None
    ) -> "CustomTarget":
        return cls(
            identifier=f"{host}:{port}",
            host=host,
            port=port,
            placement=NetworkPlacement(
                vpc_id=vpc_id, subnet_ids=[subnet_id] if subnet_id else []
            ),
        )


@dataclass
class TargetIntent:
    """What the user asked to connect to.

    With no kind set the target is selected interactively.
    """

    kind: Optional[TargetKind] = None
    identifier: Optional[str] = None
    custom_host: Optional[str] = None
    custom_port: Optional[int] = None
    custom_vpc_id: Optional[str] = None
    custom_subnet_id: Optional[str] = None

    @property
    def is_interactive(self) -> bool:
        return self.kind is None

    def validate(self) -> List[str]:
        """Validate the intent and return list of errors."""
        errors = []

        if self.kind in (TargetKind.DB_INSTANCE, TargetKind.DB_CLUSTER) and not self.identifier:
            errors.append(f"An identifier is required for {self.kind.value} targets")

        if self.kind == TargetKind.CUSTOM:
            if not self.custom_host:
                errors.append("Custom targets require a host")
            if not self.custom_port:
                errors.append("Custom targets require a port")
            if not self.custom_vpc_id:
                errors.append("Custom targets require a VPC id")

        return errors
