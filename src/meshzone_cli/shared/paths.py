"""Path management for meshzone-cli.

Manages the ~/.meshzone/ directory used for CLI configuration.
"""

from pathlib import Path

# Base directory for all meshzone data
MESHZONE_DIR = Path.home() / ".meshzone"

# CLI configuration file
CONFIG_FILE = MESHZONE_DIR / "config.yaml"

# Default location of the stack templates, relative to the working directory
DEFAULT_TEMPLATES_DIR = Path("deploy")
