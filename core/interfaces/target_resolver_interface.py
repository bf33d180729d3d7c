"""Target resolver interface."""

from abc import ABC, abstractmethod

from core.models.target import ConnectionTarget, TargetIntent


class ITargetResolver(ABC):
    """Interface for turning user intent into a connection target."""

    @abstractmethod
    async def resolve(self, intent: TargetIntent) -> ConnectionTarget:
        """Resolve an explicit or interactive intent.

        Args:
            intent: What the user asked to connect to

        Returns:
            The resolved connection target

        Raises:
            ResourceNotFoundError: The named DB instance or cluster does not exist
        """
        pass
