from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class AWSConfig:
    """AWS configuration."""
    region: Optional[str] = None
    profile: Optional[str] = None


@dataclass
class BastionConfig:
    """Bastion provisioning settings."""
    instance_type: str = "t3.micro"
    ami_parameter: str = "/aws/service/ami-amazon-linux-latest/al2023-ami-kernel-default-x86_64"
    readiness_timeout_seconds: int = 300
    poll_interval_seconds: int = 5
    run_instances_attempts: int = 6
    run_instances_retry_delay_seconds: int = 5


@dataclass
class CleanupConfig:
    """Cleanup engine settings."""
    max_concurrent: int = 10
    wait_for_termination: bool = True
    termination_timeout_seconds: int = 600
    dependency_retry_attempts: int = 10
    dependency_retry_delay_seconds: int = 5


@dataclass
class TunnelConfig:
    """Top-level tool configuration."""

    aws: AWSConfig = field(default_factory=AWSConfig)
    bastion: BastionConfig = field(default_factory=BastionConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)

    # Logging
    log_level: LogLevel = LogLevel.WARNING
    log_file: Optional[str] = None

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.bastion.instance_type:
            errors.append("Bastion instance type is required")

        if self.bastion.readiness_timeout_seconds <= 0:
            errors.append("Bastion readiness timeout must be positive")

        if self.bastion.poll_interval_seconds <= 0:
            errors.append("Bastion poll interval must be positive")

        if self.bastion.run_instances_attempts < 1:
            errors.append("Bastion run_instances attempts must be at least 1")

        if self.cleanup.max_concurrent < 1:
            errors.append("Cleanup concurrency must be at least 1")

        if self.cleanup.termination_timeout_seconds <= 0:
            errors.append("Cleanup termination timeout must be positive")

        if self.cleanup.dependency_retry_attempts < 1:
            errors.append("Cleanup dependency retry attempts must be at least 1")

        return errors
