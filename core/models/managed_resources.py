"""Managed resource groups and cleanup result models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class ManagedResourceGroup(Enum):
    """Kinds of resources basti creates, in summary order."""

    ACCESS_SECURITY_GROUPS = "accessSecurityGroups"
    BASTION_SECURITY_GROUPS = "bastionSecurityGroups"
    BASTION_INSTANCES = "bastionInstances"
    BASTION_INSTANCE_PROFILES = "bastionInstanceProfiles"
    BASTION_ROLES = "bastionRoles"

    @property
    def title(self) -> str:
        return RESOURCE_GROUP_TITLES[self]


RESOURCE_GROUP_TITLES = {
    ManagedResourceGroup.ACCESS_SECURITY_GROUPS: "Access security groups:",
    ManagedResourceGroup.BASTION_SECURITY_GROUPS: "Bastion security groups:",
    ManagedResourceGroup.BASTION_INSTANCES: "Bastion EC2 instances:",
    ManagedResourceGroup.BASTION_INSTANCE_PROFILES: "Bastion IAM instance profiles:",
    ManagedResourceGroup.BASTION_ROLES: "Bastion IAM roles:",
}

# Each stage finishes before the next starts. Access groups are detached from
# targets first, instances must be gone before their security group and
# instance profile can be removed, profiles must release roles before roles go.
DELETION_STAGES: List[Tuple[ManagedResourceGroup, ...]] = [
    (ManagedResourceGroup.ACCESS_SECURITY_GROUPS,),
    (ManagedResourceGroup.BASTION_INSTANCES,),
    (ManagedResourceGroup.BASTION_SECURITY_GROUPS,),
    (ManagedResourceGroup.BASTION_INSTANCE_PROFILES,),
    (ManagedResourceGroup.BASTION_ROLES,),
]


class ManagedResources:
    """Identifiers of managed resources per group, rebuilt from a live scan."""

    def __init__(self, resources: Optional[Dict[ManagedResourceGroup, List[str]]] = None):
        self._resources: Dict[ManagedResourceGroup, List[str]] = {
            group: [] for group in ManagedResourceGroup
        }
        for group, identifiers in (resources or {}).items():
            self._resources[group] = list(identifiers)

    def __getitem__(self, group: ManagedResourceGroup) -> List[str]:
        return self._resources[group]

    def __setitem__(self, group: ManagedResourceGroup, identifiers: List[str]) -> None:
        self._resources[group] = list(identifiers)

    def __iter__(self) -> Iterator[ManagedResourceGroup]:
        return iter(ManagedResourceGroup)

    def __len__(self) -> int:
        return sum(len(identifiers) for identifiers in self._resources.values())

    @property
    def is_empty(self) -> bool:
        return all(len(identifiers) == 0 for identifiers in self._resources.values())

    def non_empty_groups(self) -> List[ManagedResourceGroup]:
        return [group for group in ManagedResourceGroup if self._resources[group]]

    def to_dict(self) -> Dict[str, List[str]]:
        return {group.value: list(ids) for group, ids in self._resources.items()}


class CleanupOutcome(Enum):
    """Terminal result of a cleanup invocation."""

    NOTHING_TO_CLEAN = "nothing_to_clean"
    DECLINED = "declined"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"


@dataclass
class DeletionResult:
    """Result of deleting one managed resource."""

    group: ManagedResourceGroup
    resource_id: str
    success: bool = False
    error_message: Optional[str] = None
    completed_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class CleanupReport:
    """Union of successes and failures of a cleanup run."""

    results: List[DeletionResult] = field(default_factory=list)

    def add(self, result: DeletionResult) -> None:
        self.results.append(result)

    @property
    def succeeded(self) -> List[DeletionResult]:
        return [result for result in self.results if result.success]

    @property
    def failed(self) -> List[DeletionResult]:
        return [result for result in self.results if not result.success]

    @property
    def has_failures(self) -> bool:
        return any(not result.success for result in self.results)

    @property
    def outcome(self) -> CleanupOutcome:
        return (
            CleanupOutcome.PARTIAL_FAILURE
            if self.has_failures
            else CleanupOutcome.COMPLETED
        )

    def failures(self) -> List[Tuple[str, str]]:
        return [
            (result.resource_id, result.error_message or "unknown error")
            for result in self.failed
        ]
