"""Cleanup service interface."""

from abc import ABC, abstractmethod

from core.models.managed_resources import CleanupOutcome, CleanupReport, ManagedResources


class ICleanupService(ABC):
    """Interface for discovering and deleting managed resources."""

    @abstractmethod
    async def list_managed_resources(self) -> ManagedResources:
        """Scan the account for resources carrying the managed tag."""
        pass

    @abstractmethod
    def confirm_cleanup(self, resources: ManagedResources) -> bool:
        """Show what would be deleted and ask for confirmation."""
        pass

    @abstractmethod
    async def confirm_and_delete(self, resources: ManagedResources) -> CleanupReport:
        """Delete resources in dependency-safe stages."""
        pass

    @abstractmethod
    async def run_cleanup(self, auto_confirm: bool = False) -> CleanupOutcome:
        """List, confirm and delete.

        Args:
            auto_confirm: Skip the confirmation prompt

        Returns:
            Terminal outcome of the run
        """
        pass
