"""Bastion host data model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class BastionState(Enum):
    """Lifecycle of a bastion."""

    PROVISIONING = "provisioning"
    READY = "ready"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


EC2_STATE_MAPPING = {
    "pending": BastionState.PROVISIONING,
    "running": BastionState.READY,
    "shutting-down": BastionState.TERMINATING,
    "stopping": BastionState.TERMINATING,
    "terminated": BastionState.TERMINATED,
    "stopped": BastionState.TERMINATED,
}


@dataclass
class BastionDescriptor:
    """A provisioned or reused bastion host."""

    bastion_id: str
    vpc_id: str
    region: str

    instance_id: Optional[str] = None
    subnet_id: Optional[str] = None
    role_name: Optional[str] = None
    instance_profile_name: Optional[str] = None
    security_group_id: Optional[str] = None
    access_security_group_ids: List[str] = field(default_factory=list)

    state: BastionState = BastionState.PROVISIONING
    reused: bool = False
    launch_time: Optional[datetime] = None

    @property
    def is_ready(self) -> bool:
        return self.state == BastionState.READY and self.instance_id is not None

    def mark_ready(self) -> None:
        self.state = BastionState.READY
