"""Centralized logging configuration for the bastion tunnel tool."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: str) -> int:
    try:
        return getattr(logging, level.upper())
    except AttributeError:
        return logging.INFO


def configure_logging(
    level: str = "WARNING", log_file: Optional[str] = None, verbose: bool = False
) -> None:
    """Setup root logging with stderr and optional file output.

    Log records go to stderr so they never interleave with prompts
    rendered on stdout.

    Examples:
        # Console only
        configure_logging("INFO")

        # Console + file (written under logs/)
        configure_logging("INFO", "basti.log")
    """
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path("logs").mkdir(exist_ok=True)
        handlers.append(logging.FileHandler(f"logs/{log_file}"))

    logging.basicConfig(
        level=logging.DEBUG if verbose else _resolve_level(level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


def get_infrastructure_logger(module_name: str) -> logging.Logger:
    """Get logger for infrastructure modules."""
    return logging.getLogger(f"infrastructure.{module_name}")
