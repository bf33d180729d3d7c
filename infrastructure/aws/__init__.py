"""AWS infrastructure implementations."""

from .ec2_client import EC2Client
from .iam_client import IAMClient
from .rds_client import RDSClient
from .ssm_client import SSMClient
from .session_manager import AWSSessionManager

__all__ = [
    'EC2Client',
    'IAMClient',
    'RDSClient',
    'SSMClient',
    'AWSSessionManager'
]
