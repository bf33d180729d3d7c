from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import REGION, VPC_ID
from core.exceptions import OperationError, PartialCleanupFailureError, ResourceNotFoundError
from core.models.bastion import BastionDescriptor, BastionState
from core.models.managed_resources import (
    CleanupOutcome,
    CleanupReport,
    DeletionResult,
    ManagedResourceGroup,
)
from core.models.target import DbInstanceTarget, TargetIntent, TargetKind
from core.orchestration.tunnel_orchestrator import TunnelOrchestrator

PORT_CHECK = "core.orchestration.tunnel_orchestrator.is_port_available"


@pytest.fixture
def target(db_instance):
    return DbInstanceTarget.from_aws(db_instance)


@pytest.fixture
def bastion():
    return BastionDescriptor(
        bastion_id="abc12345",
        vpc_id=VPC_ID,
        region=REGION,
        instance_id="i-bastion",
        security_group_id="sg-bastion",
        state=BastionState.READY,
    )


@pytest.fixture
def components(target, bastion):
    resolver = AsyncMock()
    resolver.resolve.return_value = target
    provisioner = AsyncMock()
    provisioner.ensure_bastion.return_value = bastion
    provisioner.ensure_target_access.return_value = bastion
    negotiator = AsyncMock()
    negotiator.start_port_forward.return_value = MagicMock(name="descriptor")
    cleanup_service = AsyncMock()
    cleanup_service.last_report = None
    return resolver, provisioner, negotiator, cleanup_service


@pytest.fixture
def orchestrator(components, prompter):
    resolver, provisioner, negotiator, cleanup_service = components
    return TunnelOrchestrator(resolver, provisioner, negotiator, cleanup_service, prompter)


class TestConnect:
    """Test cases for the connect flow."""

    async def test_connect_flow(self, orchestrator, components, target, bastion):
        resolver, provisioner, negotiator, _ = components
        intent = TargetIntent(kind=TargetKind.DB_INSTANCE, identifier="orders-db")

        with patch(PORT_CHECK, return_value=True):
            descriptor = await orchestrator.connect(intent, local_port=15432)

        assert descriptor is negotiator.start_port_forward.return_value
        resolver.resolve.assert_awaited_once_with(intent)
        provisioner.ensure_bastion.assert_awaited_once_with(target)
        provisioner.ensure_target_access.assert_awaited_once_with(target, bastion)
        negotiator.start_port_forward.assert_awaited_once_with(
            bastion_instance_id="i-bastion",
            target_host=target.host,
            target_port=5432,
            local_port=15432,
        )

    async def test_local_port_defaults_to_prompt(self, orchestrator, components, prompter):
        prompter.ask_int.return_value = 5432

        with patch(PORT_CHECK, return_value=True):
            await orchestrator.connect(TargetIntent())

        prompter.ask_int.assert_called_once_with("Local port", default=5432)
        assert components[2].start_port_forward.call_args.kwargs["local_port"] == 5432

    async def test_port_in_use(self, orchestrator, components):
        with patch(PORT_CHECK, return_value=False):
            with pytest.raises(OperationError, match="already in use"):
                await orchestrator.connect(TargetIntent(), local_port=15432)

        components[1].ensure_bastion.assert_not_called()

    async def test_missing_target_is_reported(self, orchestrator, components):
        components[0].resolve.side_effect = ResourceNotFoundError("DB instance nope")

        with pytest.raises(OperationError) as exc_info:
            await orchestrator.connect(TargetIntent(kind=TargetKind.DB_INSTANCE, identifier="nope"))

        assert str(exc_info.value) == "Error retrieving connection target. DB instance nope not found"

    async def test_session_failure_is_wrapped(self, orchestrator, components):
        components[2].start_port_forward.side_effect = RuntimeError("connection reset")

        with patch(PORT_CHECK, return_value=True):
            with pytest.raises(OperationError, match="Error starting SSM session"):
                await orchestrator.connect(TargetIntent(), local_port=15432)

    async def test_tunnel_runner_receives_descriptor(self, components, prompter):
        runner = AsyncMock()
        runner.run.return_value = 0
        orchestrator = TunnelOrchestrator(*components, prompter, tunnel_runner=runner)

        with patch(PORT_CHECK, return_value=True):
            descriptor = await orchestrator.connect(TargetIntent(), local_port=15432)

        runner.run.assert_awaited_once_with(descriptor)

    async def test_failed_tunnel_is_an_error(self, components, prompter):
        runner = AsyncMock()
        runner.run.return_value = 255
        orchestrator = TunnelOrchestrator(*components, prompter, tunnel_runner=runner)

        with patch(PORT_CHECK, return_value=True):
            with pytest.raises(OperationError, match="exited with code 255"):
                await orchestrator.connect(TargetIntent(), local_port=15432)


class TestCleanup:
    """Test cases for the cleanup flow."""

    @pytest.mark.parametrize(
        "outcome",
        [CleanupOutcome.NOTHING_TO_CLEAN, CleanupOutcome.DECLINED, CleanupOutcome.COMPLETED],
    )
    async def test_outcomes_returned(self, orchestrator, components, outcome):
        components[3].run_cleanup.return_value = outcome

        assert await orchestrator.cleanup() == outcome

    async def test_partial_failure_raises(self, orchestrator, components):
        report = CleanupReport()
        report.add(DeletionResult(ManagedResourceGroup.BASTION_ROLES, "role-a", success=True))
        report.add(
            DeletionResult(
                ManagedResourceGroup.BASTION_SECURITY_GROUPS, "sg-1", error_message="in use"
            )
        )
        components[3].run_cleanup.return_value = CleanupOutcome.PARTIAL_FAILURE
        components[3].last_report = report

        with pytest.raises(PartialCleanupFailureError) as exc_info:
            await orchestrator.cleanup(auto_confirm=True)

        assert exc_info.value.failures == [("sg-1", "in use")]
        components[3].run_cleanup.assert_awaited_once_with(auto_confirm=True)
