"""Configuration service interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional
from core.models.config import TunnelConfig


class IConfigService(ABC):
    """Interface for configuration management."""

    @abstractmethod
    async def load_config(self, config_path: Optional[str] = None) -> TunnelConfig:
        """Load configuration from file.

        Args:
            config_path: Path to the configuration file, defaults apply when omitted

        Returns:
            TunnelConfig object
        """
        pass

    @abstractmethod
    async def validate_config(self) -> bool:
        """Validate the loaded configuration.

        Returns:
            True if valid

        Raises:
            ValueError: If configuration is invalid
        """
        pass

    @abstractmethod
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a configuration setting by key.

        Args:
            key: Setting key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        pass

    @abstractmethod
    def get_config(self) -> TunnelConfig:
        """Get the complete configuration."""
        pass
