"""Shared modules for meshzone-cli.

Path layout and logging setup used by every command.
"""

from .logging import configure_logging, get_logger, level_from_verbosity
from .paths import CONFIG_FILE, DEFAULT_TEMPLATES_DIR, MESHZONE_DIR

__all__ = [
    # Paths
    "MESHZONE_DIR",
    "CONFIG_FILE",
    "DEFAULT_TEMPLATES_DIR",
    # Logging
    "configure_logging",
    "get_logger",
    "level_from_verbosity",
]
