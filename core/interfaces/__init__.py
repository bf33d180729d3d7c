"""Core interfaces for the bastion tunnel tool."""

from .config_interface import IConfigService
from .prompter_interface import IPrompter
from .target_resolver_interface import ITargetResolver
from .bastion_provisioner_interface import IBastionProvisioner
from .session_negotiator_interface import ISessionNegotiator
from .cleanup_interface import ICleanupService

__all__ = [
    'IConfigService',
    'IPrompter',
    'ITargetResolver',
    'IBastionProvisioner',
    'ISessionNegotiator',
    'ICleanupService'
]
