"""Configuration service implementation."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import asdict

from core.interfaces.config_interface import IConfigService
from core.models.config import (
    TunnelConfig,
    AWSConfig,
    BastionConfig,
    CleanupConfig,
    LogLevel,
)

DEFAULT_CONFIG_PATH = "config/default.yml"


class ConfigService(IConfigService):
    """Implementation of configuration service."""

    def __init__(self, config_file_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config_file_path = config_file_path
        self._config: TunnelConfig = TunnelConfig()
        self._environment_overrides: Dict[str, Any] = {}

        if config_file_path:
            self._load_config_sync(config_file_path)

    async def load_config(self, config_path: Optional[str] = None) -> TunnelConfig:
        """Load configuration from default or specified path.

        A missing default file yields built-in defaults; a missing explicit
        file is an error.
        """
        if config_path is None:
            if not Path(DEFAULT_CONFIG_PATH).exists():
                self.logger.debug("No configuration file found, using defaults")
                raw_config: Dict[str, Any] = {}
                self._apply_environment_overrides(raw_config)
                self._config = self._parse_config(raw_config)
                return self._config
            config_path = DEFAULT_CONFIG_PATH

        return self._load_config_sync(config_path)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Centralized error handling and logging."""
        self.logger.error(f"Error {operation}: {str(error)}")
        raise error

    def _load_config_sync(self, config_file_path: str) -> TunnelConfig:
        """Synchronous implementation of config loading."""
        try:
            config_path = Path(config_file_path)

            if not config_path.exists():
                raise FileNotFoundError(
                    f"Configuration file not found: {config_file_path}"
                )

            with open(config_path, "r", encoding="utf-8") as file:
                raw_config = yaml.safe_load(file) or {}

            if not isinstance(raw_config, dict):
                raise ValueError("Configuration file must contain a mapping")

            self._apply_environment_overrides(raw_config)
            self._config = self._parse_config(raw_config)
            self._config_file_path = config_file_path

            return self._config

        except Exception as e:
            self._handle_error("loading configuration", e)

    async def validate_config(self) -> bool:
        """Validate the loaded configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        errors = self._config.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")
        return True

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a configuration setting by key path (e.g., 'aws.region')."""
        value: Any = asdict(self._config)

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_config(self) -> TunnelConfig:
        """Get the complete configuration."""
        return self._config

    def set_environment_override(self, key: str, value: Any) -> None:
        """Set an override applied on the next load (e.g. from CLI flags)."""
        self._environment_overrides[key] = value

    def _parse_config(self, raw_config: Dict[str, Any]) -> TunnelConfig:
        """Parse raw configuration into TunnelConfig object."""
        try:
            aws_data = raw_config.get("aws") or {}
            bastion_data = raw_config.get("bastion") or {}
            cleanup_data = raw_config.get("cleanup") or {}
            defaults = BastionConfig()

            return TunnelConfig(
                aws=AWSConfig(
                    region=aws_data.get("region"),
                    profile=aws_data.get("profile"),
                ),
                bastion=BastionConfig(
                    instance_type=bastion_data.get("instance_type", defaults.instance_type),
                    ami_parameter=bastion_data.get("ami_parameter", defaults.ami_parameter),
                    readiness_timeout_seconds=int(
                        bastion_data.get(
                            "readiness_timeout_seconds", defaults.readiness_timeout_seconds
                        )
                    ),
                    poll_interval_seconds=int(
                        bastion_data.get("poll_interval_seconds", defaults.poll_interval_seconds)
                    ),
                    run_instances_attempts=int(
                        bastion_data.get("run_instances_attempts", defaults.run_instances_attempts)
                    ),
                    run_instances_retry_delay_seconds=int(
                        bastion_data.get(
                            "run_instances_retry_delay_seconds",
                            defaults.run_instances_retry_delay_seconds,
                        )
                    ),
                ),
                cleanup=self._parse_cleanup_config(cleanup_data),
                log_level=self._parse_log_level(
                    (raw_config.get("logging") or {}).get("level", "WARNING")
                ),
                log_file=(raw_config.get("logging") or {}).get("file"),
            )

        except (TypeError, ValueError) as e:
            raise ValueError(f"Error parsing configuration: {str(e)}")

    def _parse_cleanup_config(self, cleanup_data: Dict[str, Any]) -> CleanupConfig:
        """Parse cleanup configuration into CleanupConfig object."""
        defaults = CleanupConfig()
        return CleanupConfig(
            max_concurrent=int(cleanup_data.get("max_concurrent", defaults.max_concurrent)),
            wait_for_termination=bool(
                cleanup_data.get("wait_for_termination", defaults.wait_for_termination)
            ),
            termination_timeout_seconds=int(
                cleanup_data.get(
                    "termination_timeout_seconds", defaults.termination_timeout_seconds
                )
            ),
            dependency_retry_attempts=int(
                cleanup_data.get(
                    "dependency_retry_attempts", defaults.dependency_retry_attempts
                )
            ),
            dependency_retry_delay_seconds=int(
                cleanup_data.get(
                    "dependency_retry_delay_seconds", defaults.dependency_retry_delay_seconds
                )
            ),
        )

    def _parse_log_level(self, log_level_str: str) -> LogLevel:
        """Parse log level string into LogLevel enum."""
        try:
            return LogLevel[log_level_str.upper()]
        except (KeyError, AttributeError):
            return LogLevel.WARNING

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration."""
        env_mappings = {
            "BASTI_AWS_REGION": "aws.region",
            "BASTI_AWS_PROFILE": "aws.profile",
            "BASTI_LOG_LEVEL": "logging.level",
            "BASTI_INSTANCE_TYPE": "bastion.instance_type",
            "BASTI_READINESS_TIMEOUT": "bastion.readiness_timeout_seconds",
        }

        for env_var, config_key in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                if env_value.isdigit():
                    env_value = int(env_value)

                self._set_nested_value(config, config_key, env_value)

        for key, value in self._environment_overrides.items():
            if value is not None:
                self._set_nested_value(config, key, value)

    def _set_nested_value(
        self, config: Dict[str, Any], key_path: str, value: Any
    ) -> None:
        """Set a nested value in configuration dictionary."""
        keys = key_path.split(".")
        current = config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value
