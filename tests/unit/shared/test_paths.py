"""Unit tests for meshzone_cli.shared.paths module."""

from pathlib import Path

import pytest


@pytest.mark.cli_unit
class TestPaths:
    """Tests for path constants."""

    def test_meshzone_dir_is_in_home(self):
        """Test MESHZONE_DIR is in user's home directory."""
        from meshzone_cli.shared.paths import MESHZONE_DIR

        assert MESHZONE_DIR == Path.home() / ".meshzone"

    def test_config_file_location(self):
        """Test CONFIG_FILE is in MESHZONE_DIR."""
        from meshzone_cli.shared.paths import CONFIG_FILE, MESHZONE_DIR

        assert CONFIG_FILE == MESHZONE_DIR / "config.yaml"

    def test_templates_dir_is_relative(self):
        """Test templates are looked up relative to the working directory."""
        from meshzone_cli.shared.paths import DEFAULT_TEMPLATES_DIR

        assert DEFAULT_TEMPLATES_DIR == Path("deploy")
        assert not DEFAULT_TEMPLATES_DIR.is_absolute()
