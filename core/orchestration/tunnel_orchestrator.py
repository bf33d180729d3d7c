import logging
from typing import Optional

from core.exceptions import BastiError, OperationError, PartialCleanupFailureError
from core.interfaces.bastion_provisioner_interface import IBastionProvisioner
from core.interfaces.cleanup_interface import ICleanupService
from core.interfaces.prompter_interface import IPrompter
from core.interfaces.session_negotiator_interface import ISessionNegotiator
from core.interfaces.target_resolver_interface import ITargetResolver
from core.models.managed_resources import CleanupOutcome
from core.models.session import SsmSessionDescriptor
from core.models.target import ConnectionTarget, TargetIntent
from core.services.session_negotiator_service import is_port_available
from infrastructure.tunnel.session_plugin import SessionPluginRunner


class TunnelOrchestrator:
    """Drives the connect and cleanup flows."""

    def __init__(
        self,
        target_resolver: ITargetResolver,
        bastion_provisioner: IBastionProvisioner,
        session_negotiator: ISessionNegotiator,
        cleanup_service: ICleanupService,
        prompter: IPrompter,
        tunnel_runner: Optional[SessionPluginRunner] = None,
    ):
        self.target_resolver = target_resolver
        self.bastion_provisioner = bastion_provisioner
        self.session_negotiator = session_negotiator
        self.cleanup_service = cleanup_service
        self.prompter = prompter
        self.tunnel_runner = tunnel_runner
        self.logger = logging.getLogger(__name__)

    async def connect(
        self, intent: TargetIntent, local_port: Optional[int] = None
    ) -> SsmSessionDescriptor:
        """Resolve the target, ensure a bastion and open a port-forwarding session.

        When a tunnel runner is configured this returns only after the tunnel
        closes, and a non-zero plugin exit raises OperationError.
        """
        target = await self._resolve_target(intent)
        local_port = self._select_local_port(target, local_port)

        self.prompter.info(f"Setting up bastion for {target.display_name}")
        bastion = await self.bastion_provisioner.ensure_bastion(target)
        bastion = await self.bastion_provisioner.ensure_target_access(target, bastion)
        self.logger.info(f"Using bastion {bastion.bastion_id} ({bastion.instance_id})")

        try:
            descriptor = await self.session_negotiator.start_port_forward(
                bastion_instance_id=bastion.instance_id,
                target_host=target.host,
                target_port=target.port,
                local_port=local_port,
            )
        except Exception as e:
            raise OperationError.from_error("starting SSM session", e) from e

        self.prompter.info(
            f"Port forwarding localhost:{local_port} -> {target.host}:{target.port}"
        )
        if self.tunnel_runner:
            exit_code = await self.tunnel_runner.run(descriptor)
            self.logger.info(f"Tunnel closed with exit code {exit_code}")
            if exit_code != 0:
                raise OperationError(
                    "running port forwarding",
                    f"session-manager-plugin exited with code {exit_code}",
                )
        return descriptor

    async def cleanup(self, auto_confirm: bool = False) -> CleanupOutcome:
        """Remove every managed resource.

        Raises:
            PartialCleanupFailureError: Some resources could not be deleted
        """
        outcome = await self.cleanup_service.run_cleanup(auto_confirm=auto_confirm)

        if outcome == CleanupOutcome.PARTIAL_FAILURE:
            report = self.cleanup_service.last_report
            raise PartialCleanupFailureError(report.failures() if report else [])

        self.logger.info(f"Cleanup finished: {outcome.value}")
        return outcome

    async def _resolve_target(self, intent: TargetIntent) -> ConnectionTarget:
        try:
            return await self.target_resolver.resolve(intent)
        except OperationError:
            raise
        except (BastiError, ValueError) as e:
            raise OperationError.from_error("retrieving connection target", e) from e

    def _select_local_port(self, target: ConnectionTarget, local_port: Optional[int]) -> int:
        if local_port is None:
            local_port = self.prompter.ask_int("Local port", default=target.port)

        if not 0 < local_port < 65536:
            raise OperationError("selecting local port", f"invalid port {local_port}")
        if not is_port_available(local_port):
            raise OperationError("selecting local port", f"port {local_port} is already in use")
        return local_port
