"""Core business services for the bastion tunnel tool."""

from .config_service import ConfigService
from .target_resolver_service import TargetResolverService
from .bastion_provisioner_service import BastionProvisionerService
from .session_negotiator_service import SessionNegotiatorService
from .cleanup_service import CleanupService

__all__ = [
    'ConfigService',
    'TargetResolverService',
    'BastionProvisionerService',
    'SessionNegotiatorService',
    'CleanupService'
]
