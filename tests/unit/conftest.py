"""Shared fixtures for unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from core.interfaces.prompter_interface import IPrompter
from core.utils.async_accessor import AsyncAccessor
from core.utils.tags import MANAGED_TAG_KEY, MANAGED_TAG_VALUE

REGION = "eu-west-1"
VPC_ID = "vpc-0a1b2c3d"


def client_error(code: str, message: str = "error", operation: str = "Operation") -> ClientError:
    """Build a botocore ClientError with the given code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def managed_tag_list(**extra) -> list:
    tags = [{"Key": MANAGED_TAG_KEY, "Value": MANAGED_TAG_VALUE}]
    tags.extend({"Key": key, "Value": value} for key, value in extra.items())
    return tags


@pytest.fixture
def prompter():
    return MagicMock(spec=IPrompter)


@pytest.fixture
def ec2_client():
    return AsyncMock()


@pytest.fixture
def iam_client():
    return AsyncMock()


@pytest.fixture
def rds_client():
    return AsyncMock()


@pytest.fixture
def ssm_client():
    client = AsyncMock()
    client.region = AsyncAccessor.of(REGION)
    client.endpoint = AsyncAccessor.of(None)
    return client


@pytest.fixture
def db_instance():
    return {
        "DBInstanceIdentifier": "orders-db",
        "Engine": "postgres",
        "Endpoint": {"Address": "orders-db.abc123.eu-west-1.rds.amazonaws.com", "Port": 5432},
        "DBSubnetGroup": {
            "DBSubnetGroupName": "orders-subnets",
            "VpcId": VPC_ID,
            "Subnets": [{"SubnetIdentifier": "subnet-db1"}, {"SubnetIdentifier": "subnet-db2"}],
        },
        "VpcSecurityGroups": [{"VpcSecurityGroupId": "sg-db", "Status": "active"}],
    }


@pytest.fixture
def db_cluster():
    return {
        "DBClusterIdentifier": "analytics",
        "Engine": "aurora-mysql",
        "Endpoint": "analytics.cluster-abc123.eu-west-1.rds.amazonaws.com",
        "Port": 3306,
        "DBSubnetGroup": "analytics-subnets",
        "VpcSecurityGroups": [{"VpcSecurityGroupId": "sg-analytics", "Status": "active"}],
    }


@pytest.fixture
def db_subnet_group():
    return {
        "DBSubnetGroupName": "analytics-subnets",
        "VpcId": VPC_ID,
        "Subnets": [{"SubnetIdentifier": "subnet-db1"}],
    }
