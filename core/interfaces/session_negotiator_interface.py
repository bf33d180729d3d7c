"""Session negotiator interface."""

from abc import ABC, abstractmethod

from core.models.session import SsmSessionDescriptor


class ISessionNegotiator(ABC):
    """Interface for starting port-forwarding sessions."""

    @abstractmethod
    async def start_port_forward(
        self,
        bastion_instance_id: str,
        target_host: str,
        target_port: int,
        local_port: int,
    ) -> SsmSessionDescriptor:
        """Start a port-forwarding session through the bastion.

        Raises:
            SessionResponseInvalidError: The session response cannot be used
        """
        pass
