from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console

from conftest import client_error
from core.exceptions import AccessDeniedError, OperationError, ResourceNotFoundError
from core.models.prompt import ChoiceGroup, PromptChoice
from core.models.session import SsmSessionDescriptor, SsmSessionRequest, SsmSessionResponse
from core.utils.async_accessor import AsyncAccessor
from core.utils.retry import retry_with_backoff
from infrastructure.aws.ec2_client import EC2Client
from infrastructure.aws.rds_client import RDSClient
from infrastructure.aws.ssm_client import SSMClient
from infrastructure.cli.prompter import RichPrompter
from infrastructure.tunnel.session_plugin import SessionPluginRunner


@pytest.fixture
def session_manager():
    manager = MagicMock()
    manager.client.return_value = MagicMock()
    return manager


class TestAsyncAccessor:
    """Test cases for uniform async value access."""

    async def test_static_value(self):
        assert await AsyncAccessor("eu-west-1").get() == "eu-west-1"
        assert await AsyncAccessor.of("eu-west-1").get() == "eu-west-1"

    async def test_sync_and_async_functions(self):
        async def resolve():
            return "us-east-1"

        assert await AsyncAccessor(lambda: "eu-west-1").get() == "eu-west-1"
        assert await AsyncAccessor(resolve).get() == "us-east-1"


class TestSSMClient:
    """Test cases for the SSM client wrapper."""

    async def test_region_and_endpoint_accessors(self, session_manager):
        boto_client = session_manager.client.return_value
        boto_client.meta.region_name = "eu-west-1"
        boto_client.meta.endpoint_url = "https://ssm.eu-west-1.amazonaws.com"
        client = SSMClient(session_manager)

        assert await client.region.get() == "eu-west-1"
        endpoint = await client.endpoint.get()
        assert endpoint.url == "https://ssm.eu-west-1.amazonaws.com"
        session_manager.client.assert_called_with("ssm")

    async def test_access_denied_is_translated(self, session_manager):
        boto_client = session_manager.client.return_value
        boto_client.start_session.side_effect = client_error("AccessDeniedException")
        client = SSMClient(session_manager)

        with pytest.raises(AccessDeniedError):
            await client.start_session({"Target": "i-1"})


class TestEC2Client:
    """Test cases for the EC2 client wrapper."""

    async def test_missing_group_is_translated(self, session_manager):
        boto_client = session_manager.client.return_value
        boto_client.delete_security_group.side_effect = client_error("InvalidGroup.NotFound")
        client = EC2Client(session_manager)

        with pytest.raises(ResourceNotFoundError):
            await client.delete_security_group("sg-gone")

    async def test_describe_instances_flattens_reservations(self, session_manager):
        boto_client = session_manager.client.return_value
        boto_client.get_paginator.return_value.paginate.return_value = [
            {"Reservations": [{"Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]}]},
            {"Reservations": [{"Instances": [{"InstanceId": "i-3"}]}]},
        ]
        client = EC2Client(session_manager)

        instances = await client.describe_instances(filters=[{"Name": "x", "Values": ["y"]}])

        assert [instance["InstanceId"] for instance in instances] == ["i-1", "i-2", "i-3"]


class TestRDSClient:
    """Test cases for the RDS client wrapper."""

    async def test_empty_describe_is_not_found(self, session_manager):
        boto_client = session_manager.client.return_value
        boto_client.get_paginator.return_value.paginate.return_value = [{"DBInstances": []}]
        client = RDSClient(session_manager)

        with pytest.raises(ResourceNotFoundError):
            await client.get_db_instance("nope")


class TestRichPrompter:
    """Test cases for the terminal prompter."""

    @pytest.fixture
    def prompter(self):
        return RichPrompter(Console(record=True, width=120))

    def test_select_numbers_choices_across_groups(self, prompter):
        groups = [
            ChoiceGroup("Database instances:", [PromptChoice("orders-db", "a")]),
            ChoiceGroup("Database clusters:", [PromptChoice("analytics", "b")]),
            ChoiceGroup(None, [PromptChoice("Custom", "c")]),
        ]

        with patch("infrastructure.cli.prompter.IntPrompt.ask", return_value=2):
            assert prompter.select("Select target to connect to", groups) == "b"

        output = prompter.console.export_text()
        assert "1. orders-db" in output
        assert "2. analytics" in output
        assert "3. Custom" in output

    def test_show_summary(self, prompter):
        prompter.show_summary(
            "The following resources will be deleted:",
            [ChoiceGroup("Bastion IAM roles:", [PromptChoice("basti-instance-a", "basti-instance-a")])],
        )

        output = prompter.console.export_text()
        assert "Bastion IAM roles:" in output
        assert "basti-instance-a" in output


class TestSessionPluginRunner:
    """Test cases for the session-manager-plugin runner."""

    @pytest.fixture
    def descriptor(self):
        return SsmSessionDescriptor(
            request=SsmSessionRequest("i-1", "db.internal", 5432, 15432),
            response=SsmSessionResponse("s-1", "token", "wss://ssmmessages.eu-west-1.amazonaws.com/v1"),
            region="eu-west-1",
            endpoint="https://ssm.eu-west-1.amazonaws.com",
        )

    def test_missing_plugin(self, descriptor):
        with patch("infrastructure.tunnel.session_plugin.shutil.which", return_value=None):
            with pytest.raises(OperationError, match="was not found in PATH"):
                SessionPluginRunner().build_command(descriptor)

    def test_command_arguments(self, descriptor):
        with patch(
            "infrastructure.tunnel.session_plugin.shutil.which",
            return_value="/usr/local/bin/session-manager-plugin",
        ):
            command = SessionPluginRunner(profile="dev").build_command(descriptor)

        assert command[0] == "/usr/local/bin/session-manager-plugin"
        assert command[2:5] == ["eu-west-1", "StartSession", "dev"]
        assert command[6] == "https://ssm.eu-west-1.amazonaws.com"

    async def test_run_waits_for_plugin(self, descriptor):
        process = MagicMock()
        process.wait.return_value = 0

        with patch(
            "infrastructure.tunnel.session_plugin.shutil.which", return_value="/bin/plugin"
        ), patch(
            "infrastructure.tunnel.session_plugin.subprocess.Popen", return_value=process
        ) as popen:
            exit_code = await SessionPluginRunner().run(descriptor)

        assert exit_code == 0
        assert popen.call_args.args[0][0] == "/bin/plugin"


class TestRetryWithBackoff:
    """Test cases for the coroutine retry decorator."""

    async def test_retries_until_success(self):
        calls = []

        @retry_with_backoff(tries=3, base_delay=0, jitter=False)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("not yet")
            return "done"

        assert await flaky() == "done"
        assert len(calls) == 3

    async def test_non_retryable_error_is_raised_immediately(self):
        operation = AsyncMock(side_effect=KeyError("boom"))
        wrapped = retry_with_backoff(
            should_retry=lambda exc: isinstance(exc, RuntimeError), tries=5, base_delay=0
        )(operation)

        with pytest.raises(KeyError):
            await wrapped()
        assert operation.await_count == 1

    async def test_gives_up_after_tries(self):
        operation = AsyncMock(side_effect=RuntimeError("still failing"))
        wrapped = retry_with_backoff(tries=2, base_delay=0, jitter=False)(operation)

        with pytest.raises(RuntimeError):
            await wrapped()
        assert operation.await_count == 2
