"""Runs session-manager-plugin for a negotiated session."""

import asyncio
import shutil
import subprocess
from typing import List, Optional

from core.exceptions import OperationError
from core.models.session import SsmSessionDescriptor
from core.utils.logger import get_infrastructure_logger

SESSION_MANAGER_PLUGIN = "session-manager-plugin"


class SessionPluginRunner:
    """Hands a session descriptor to session-manager-plugin and waits for it to exit."""

    def __init__(self, profile: Optional[str] = None, executable: str = SESSION_MANAGER_PLUGIN):
        self.profile = profile
        self.executable = executable
        self.logger = get_infrastructure_logger(__name__)

    def build_command(self, descriptor: SsmSessionDescriptor) -> List[str]:
        executable = shutil.which(self.executable)
        if not executable:
            raise OperationError(
                "starting port forwarding",
                f"{self.executable} was not found in PATH. Install the AWS Session "
                "Manager plugin and retry",
            )
        return [executable] + descriptor.plugin_arguments(self.profile)

    async def run(self, descriptor: SsmSessionDescriptor) -> int:
        """Run the plugin until the tunnel closes.

        Returns:
            The plugin's exit code
        """
        command = self.build_command(descriptor)
        self.logger.debug(f"Starting {self.executable} for session {descriptor.response.session_id}")

        process = subprocess.Popen(command)
        try:
            return await asyncio.to_thread(process.wait)
        except asyncio.CancelledError:
            self.logger.info("Closing tunnel")
            process.terminate()
            process.wait()
            raise
