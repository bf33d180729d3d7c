"""Local end of port-forwarding sessions."""

from .session_plugin import SessionPluginRunner

__all__ = ['SessionPluginRunner']
