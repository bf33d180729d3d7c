"""Bastion provisioner interface."""

from abc import ABC, abstractmethod

from core.models.bastion import BastionDescriptor
from core.models.target import ConnectionTarget


class IBastionProvisioner(ABC):
    """Interface for reusing or creating the bastion a target is reached through."""

    @abstractmethod
    async def ensure_bastion(self, target: ConnectionTarget) -> BastionDescriptor:
        """Return a ready bastion placed so it can reach the target.

        Args:
            target: The resolved connection target

        Returns:
            Descriptor of a reused or freshly provisioned bastion

        Raises:
            OperationError: Provisioning failed, possibly after creating resources
        """
        pass

    @abstractmethod
    async def ensure_target_access(
        self, target: ConnectionTarget, bastion: BastionDescriptor
    ) -> BastionDescriptor:
        """Make sure the target admits traffic from the bastion on its port."""
        pass
