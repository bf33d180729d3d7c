from datetime import datetime

import pytest
from botocore.exceptions import NoRegionError

from conftest import REGION, VPC_ID, client_error, managed_tag_list
from core.exceptions import AccessDeniedError, OperationError, ProvisioningTimeoutError
from core.models.bastion import BastionDescriptor, BastionState
from core.models.config import BastionConfig
from core.models.target import CustomTarget, DbInstanceTarget
from core.services.bastion_provisioner_service import BastionProvisionerService, group_admits
from core.utils.async_accessor import AsyncAccessor
from core.utils.tags import (
    BASTION_ID_TAG_KEY,
    MANAGED_TAG_KEY,
    RESOURCE_GROUP_TAG_KEY,
    TARGET_TAG_KEY,
    VPC_ID_TAG_KEY,
    tags_to_dict,
)

FAST_CONFIG = BastionConfig(
    readiness_timeout_seconds=30,
    poll_interval_seconds=0,
    run_instances_retry_delay_seconds=0,
)


def running_bastion(instance_id="i-bastion", bastion_id="abc12345", launched=1):
    return {
        "InstanceId": instance_id,
        "VpcId": VPC_ID,
        "SubnetId": "subnet-public",
        "State": {"Name": "running"},
        "LaunchTime": datetime(2024, 1, launched),
        "SecurityGroups": [{"GroupId": "sg-bastion", "GroupName": f"basti-instance-{bastion_id}"}],
        "IamInstanceProfile": {
            "Arn": f"arn:aws:iam::123456789012:instance-profile/basti/basti-instance-{bastion_id}"
        },
        "Tags": managed_tag_list(**{BASTION_ID_TAG_KEY: bastion_id, VPC_ID_TAG_KEY: VPC_ID}),
    }


@pytest.fixture
def target(db_instance):
    return DbInstanceTarget.from_aws(db_instance)


@pytest.fixture
def provisioner(ec2_client, iam_client, ssm_client, rds_client, prompter):
    return BastionProvisionerService(
        ec2_client, iam_client, ssm_client, rds_client, FAST_CONFIG, prompter
    )


@pytest.fixture
def provisioning_mocks(ec2_client, iam_client, ssm_client):
    ec2_client.describe_instances.return_value = []
    ec2_client.create_security_group.return_value = "sg-bastion"
    ec2_client.describe_subnets.return_value = [
        {"SubnetId": "subnet-private", "MapPublicIpOnLaunch": False},
        {"SubnetId": "subnet-public", "MapPublicIpOnLaunch": True},
    ]
    ec2_client.run_instance.return_value = {"InstanceId": "i-new"}
    iam_client.create_bastion_role.return_value = "AROAEXAMPLE"
    iam_client.create_instance_profile.return_value = "AIPAEXAMPLE"
    ssm_client.get_parameter.return_value = "ami-0123456789"
    ssm_client.is_instance_online.return_value = True


class TestBastionReuse:
    """Test cases for reusing compatible bastions."""

    async def test_reuses_running_bastion(self, provisioner, target, ec2_client, iam_client, ssm_client):
        ec2_client.describe_instances.return_value = [running_bastion()]
        ssm_client.is_instance_online.return_value = True

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.reused is True
        assert bastion.instance_id == "i-bastion"
        assert bastion.bastion_id == "abc12345"
        assert bastion.security_group_id == "sg-bastion"
        assert bastion.instance_profile_name == "basti-instance-abc12345"
        assert bastion.region == REGION
        assert bastion.state == BastionState.READY
        ec2_client.create_security_group.assert_not_called()
        ec2_client.run_instance.assert_not_called()
        iam_client.create_bastion_role.assert_not_called()

    async def test_repeated_calls_create_nothing(self, provisioner, target, ec2_client, ssm_client):
        ec2_client.describe_instances.return_value = [running_bastion()]
        ssm_client.is_instance_online.return_value = True

        first = await provisioner.ensure_bastion(target)
        second = await provisioner.ensure_bastion(target)

        assert first.instance_id == second.instance_id
        ec2_client.run_instance.assert_not_called()

    async def test_oldest_compatible_bastion_wins(self, provisioner, target, ec2_client, ssm_client):
        ec2_client.describe_instances.return_value = [
            running_bastion("i-newer", "newer000", launched=5),
            running_bastion("i-older", "older000", launched=2),
        ]
        ssm_client.is_instance_online.return_value = True

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.instance_id == "i-older"

    async def test_pending_bastion_is_waited_on(self, provisioner, target, ec2_client, ssm_client):
        pending = running_bastion()
        pending["State"] = {"Name": "pending"}
        ec2_client.describe_instances.return_value = [pending]
        ssm_client.is_instance_online.side_effect = [False, False, True]

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.is_ready
        assert ssm_client.is_instance_online.await_count == 3

    async def test_unmanaged_instance_is_not_reused(
        self, provisioner, target, ec2_client, provisioning_mocks
    ):
        foreign = running_bastion()
        foreign["Tags"] = [{"Key": BASTION_ID_TAG_KEY, "Value": "abc12345"}]
        ec2_client.describe_instances.return_value = [foreign]

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.reused is False
        assert bastion.instance_id == "i-new"

    async def test_bastion_in_other_vpc_is_not_reused(
        self, provisioner, target, ec2_client, provisioning_mocks
    ):
        elsewhere = running_bastion()
        elsewhere["VpcId"] = "vpc-other"
        ec2_client.describe_instances.return_value = [elsewhere]

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.instance_id == "i-new"


class TestBastionProvisioning:
    """Test cases for creating a bastion from scratch."""

    async def test_creates_tagged_resources(
        self, provisioner, target, ec2_client, iam_client, provisioning_mocks
    ):
        bastion = await provisioner.ensure_bastion(target)

        assert bastion.reused is False
        assert bastion.is_ready
        assert bastion.instance_id == "i-new"
        assert bastion.subnet_id == "subnet-public"
        assert bastion.security_group_id == "sg-bastion"
        assert bastion.role_name == bastion.instance_profile_name == f"basti-instance-{bastion.bastion_id}"

        sg_tags = tags_to_dict(
            ec2_client.create_security_group.call_args.kwargs["tag_specifications"][0]["Tags"]
        )
        assert sg_tags[MANAGED_TAG_KEY] == "true"
        assert sg_tags[RESOURCE_GROUP_TAG_KEY] == "bastionSecurityGroups"
        assert sg_tags[BASTION_ID_TAG_KEY] == bastion.bastion_id

        role_name, role_tags = iam_client.create_bastion_role.call_args.args
        assert tags_to_dict(role_tags)[RESOURCE_GROUP_TAG_KEY] == "bastionRoles"

        _, _, profile_tags = iam_client.create_instance_profile.call_args.args
        assert tags_to_dict(profile_tags)[RESOURCE_GROUP_TAG_KEY] == "bastionInstanceProfiles"

        run_kwargs = ec2_client.run_instance.call_args.kwargs
        instance_tags = tags_to_dict(run_kwargs["tag_specifications"][0]["Tags"])
        assert instance_tags[MANAGED_TAG_KEY] == "true"
        assert instance_tags[VPC_ID_TAG_KEY] == VPC_ID
        assert run_kwargs["image_id"] == "ami-0123456789"
        assert run_kwargs["instance_type"] == "t3.micro"
        assert run_kwargs["instance_profile_name"] == role_name

    async def test_run_instances_retried_while_profile_propagates(
        self, provisioner, target, ec2_client, provisioning_mocks
    ):
        ec2_client.run_instance.side_effect = [
            client_error(
                "InvalidParameterValue",
                "Value (basti-instance-x) for parameter iamInstanceProfile.name is invalid",
                "RunInstances",
            ),
            {"InstanceId": "i-new"},
        ]

        bastion = await provisioner.ensure_bastion(target)

        assert bastion.instance_id == "i-new"
        assert ec2_client.run_instance.await_count == 2

    async def test_other_run_instances_errors_are_not_retried(
        self, provisioner, target, ec2_client, provisioning_mocks
    ):
        ec2_client.run_instance.side_effect = client_error("InsufficientInstanceCapacity")

        with pytest.raises(OperationError):
            await provisioner.ensure_bastion(target)

        assert ec2_client.run_instance.await_count == 1

    async def test_readiness_timeout_is_dirty(
        self, ec2_client, iam_client, ssm_client, rds_client, prompter, target, provisioning_mocks
    ):
        ssm_client.is_instance_online.return_value = False
        provisioner = BastionProvisionerService(
            ec2_client,
            iam_client,
            ssm_client,
            rds_client,
            BastionConfig(readiness_timeout_seconds=0, poll_interval_seconds=0),
            prompter,
        )

        with pytest.raises(OperationError) as exc_info:
            await provisioner.ensure_bastion(target)

        assert exc_info.value.dirty is True
        assert isinstance(exc_info.value.__cause__, ProvisioningTimeoutError)
        assert "basti cleanup" in str(exc_info.value)

    async def test_failure_after_first_resource_is_dirty(
        self, provisioner, target, iam_client, provisioning_mocks
    ):
        iam_client.create_bastion_role.side_effect = AccessDeniedError("creating IAM role")

        with pytest.raises(OperationError) as exc_info:
            await provisioner.ensure_bastion(target)

        assert exc_info.value.dirty is True
        assert str(exc_info.value).startswith("Error creating bastion. Access denied by IAM")

    async def test_target_without_vpc(self, provisioner, ec2_client):
        target = CustomTarget(identifier="h:1", host="h", port=1)

        with pytest.raises(OperationError):
            await provisioner.ensure_bastion(target)

        ec2_client.describe_instances.assert_not_called()

    async def test_region_lookup_failure_is_wrapped(
        self, provisioner, target, provisioning_mocks, ssm_client, ec2_client
    ):
        def no_region():
            raise NoRegionError()

        ssm_client.region = AsyncAccessor(no_region)

        with pytest.raises(OperationError) as exc_info:
            await provisioner.ensure_bastion(target)

        assert str(exc_info.value).startswith("Error creating bastion.")
        ec2_client.create_security_group.assert_not_called()


class TestTargetAccess:
    """Test cases for granting the bastion access to the target."""

    @pytest.fixture
    def bastion(self):
        return BastionDescriptor(
            bastion_id="abc12345",
            vpc_id=VPC_ID,
            region=REGION,
            instance_id="i-bastion",
            security_group_id="sg-bastion",
            state=BastionState.READY,
        )

    async def test_creates_and_attaches_access_group(
        self, provisioner, target, bastion, ec2_client, rds_client
    ):
        ec2_client.describe_security_groups.return_value = [{"GroupId": "sg-db", "IpPermissions": []}]
        ec2_client.create_security_group.return_value = "sg-access"

        result = await provisioner.ensure_target_access(target, bastion)

        assert result.access_security_group_ids == ["sg-access"]
        tags = tags_to_dict(
            ec2_client.create_security_group.call_args.kwargs["tag_specifications"][0]["Tags"]
        )
        assert tags[MANAGED_TAG_KEY] == "true"
        assert tags[RESOURCE_GROUP_TAG_KEY] == "accessSecurityGroups"
        assert tags[TARGET_TAG_KEY] == "instance:orders-db"
        ec2_client.authorize_ingress_from_group.assert_awaited_once()
        assert ec2_client.authorize_ingress_from_group.call_args.args[:3] == (
            "sg-access",
            "sg-bastion",
            5432,
        )
        rds_client.set_db_instance_security_groups.assert_awaited_once_with(
            "orders-db", ["sg-db", "sg-access"]
        )

    async def test_existing_rule_skips_access_group(
        self, provisioner, target, bastion, ec2_client, rds_client
    ):
        ec2_client.describe_security_groups.return_value = [
            {
                "GroupId": "sg-db",
                "IpPermissions": [
                    {
                        "IpProtocol": "tcp",
                        "FromPort": 5432,
                        "ToPort": 5432,
                        "UserIdGroupPairs": [{"GroupId": "sg-bastion"}],
                    }
                ],
            }
        ]

        await provisioner.ensure_target_access(target, bastion)

        ec2_client.create_security_group.assert_not_called()
        rds_client.set_db_instance_security_groups.assert_not_called()

    async def test_custom_target_is_skipped_with_warning(
        self, provisioner, bastion, ec2_client, prompter
    ):
        target = CustomTarget.create("10.0.1.15", 6379, VPC_ID)

        await provisioner.ensure_target_access(target, bastion)

        prompter.warn.assert_called_once()
        ec2_client.describe_security_groups.assert_not_called()

    async def test_attach_failure_is_dirty(self, provisioner, target, bastion, ec2_client, rds_client):
        ec2_client.describe_security_groups.return_value = []
        ec2_client.create_security_group.return_value = "sg-access"
        rds_client.set_db_instance_security_groups.side_effect = AccessDeniedError("modifying DB instance")

        with pytest.raises(OperationError) as exc_info:
            await provisioner.ensure_target_access(target, bastion)

        assert exc_info.value.dirty is True

    async def test_cluster_member_access_goes_through_cluster(
        self, provisioner, bastion, db_instance, ec2_client, rds_client
    ):
        target = DbInstanceTarget.from_aws({**db_instance, "DBClusterIdentifier": "orders-cluster"})
        ec2_client.describe_security_groups.return_value = [{"GroupId": "sg-db", "IpPermissions": []}]
        ec2_client.create_security_group.return_value = "sg-access"

        await provisioner.ensure_target_access(target, bastion)

        rds_client.set_db_cluster_security_groups.assert_awaited_once_with(
            "orders-cluster", ["sg-db", "sg-access"]
        )
        rds_client.set_db_instance_security_groups.assert_not_called()
        tags = tags_to_dict(
            ec2_client.create_security_group.call_args.kwargs["tag_specifications"][0]["Tags"]
        )
        assert tags[TARGET_TAG_KEY] == "cluster:orders-cluster"


class TestGroupAdmits:
    """Test cases for security group rule matching."""

    def test_port_range_and_all_traffic(self):
        ranged = {"IpPermissions": [{"IpProtocol": "tcp", "FromPort": 5000, "ToPort": 6000,
                                     "UserIdGroupPairs": [{"GroupId": "sg-b"}]}]}
        everything = {"IpPermissions": [{"IpProtocol": "-1", "UserIdGroupPairs": [{"GroupId": "sg-b"}]}]}

        assert group_admits(ranged, "sg-b", 5432)
        assert not group_admits(ranged, "sg-b", 3306)
        assert not group_admits(ranged, "sg-other", 5432)
        assert group_admits(everything, "sg-b", 3306)
