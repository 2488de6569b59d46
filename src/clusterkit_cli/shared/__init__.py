"""Shared modules for clusterkit-cli.

Paths and logging used by the bootstrap engine and by the CLI commands.
"""

from .logging import configure_logging, get_logger
from .paths import CLUSTERKIT_DIR, CONFIG_FILE

__all__ = [
    # Paths
    "CLUSTERKIT_DIR",
    "CONFIG_FILE",
    # Logging
    "configure_logging",
    "get_logger",
]
