"""Core data models for the bastion tunnel tool."""

from .target import (
    TargetKind,
    NetworkPlacement,
    ConnectionTarget,
    DbInstanceTarget,
    DbClusterTarget,
    CustomTarget,
    TargetIntent,
)
from .bastion import BastionDescriptor, BastionState
from .session import SsmSessionRequest, SsmSessionResponse, SsmSessionDescriptor, Endpoint
from .managed_resources import (
    ManagedResourceGroup,
    ManagedResources,
    CleanupOutcome,
    CleanupReport,
    DeletionResult,
)
from .config import TunnelConfig, AWSConfig, BastionConfig, CleanupConfig, LogLevel
from .prompt import ChoiceGroup, PromptChoice

__all__ = [
    'TargetKind',
    'NetworkPlacement',
    'ConnectionTarget',
    'DbInstanceTarget',
    'DbClusterTarget',
    'CustomTarget',
    'TargetIntent',
    'BastionDescriptor',
    'BastionState',
    'SsmSessionRequest',
    'SsmSessionResponse',
    'SsmSessionDescriptor',
    'Endpoint',
    'ManagedResourceGroup',
    'ManagedResources',
    'CleanupOutcome',
    'CleanupReport',
    'DeletionResult',
    'TunnelConfig',
    'AWSConfig',
    'BastionConfig',
    'CleanupConfig',
    'LogLevel',
    'ChoiceGroup',
    'PromptChoice'
]
