"""Shared fixtures for zone lifecycle scenarios.

Every command invoked through ``cli`` talks to the same in-memory backends,
so stacks and secrets left behind by one invocation are visible to the next.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from meshzone_cli.zone.secrets import SecretLifecycleManager
from meshzone_cli.zone.state import ZoneStateInspector

# ---------------------------------------------------------------------------
# Command runner
# ---------------------------------------------------------------------------


@pytest.fixture
def cli(backends):
    """Invoke a zone command against the shared backends."""
    runner = CliRunner()

    def _invoke(command, args, input=None):
        with (
            patch("meshzone_cli.commands.deploy.create_backends", return_value=backends),
            patch("meshzone_cli.commands.teardown.create_backends", return_value=backends),
        ):
            return runner.invoke(command, args, input=input)

    return _invoke


@pytest.fixture
def deploy_args(templates_dir):
    """Build deploy arguments for a zone, plus any extra flags."""

    def _args(zone="z1", *extra):
        return [
            "--zone-name",
            zone,
            "--vpc-cidr",
            "10.0.0.0/16",
            "--subnet1-cidr",
            "10.0.0.0/24",
            "--subnet2-cidr",
            "10.0.1.0/24",
            "--connectivity-token",
            "t",
            "--kds-address",
            "grpcs://x:443",
            "--cp-id",
            "c1",
            "--settle-seconds",
            "0",
            "--templates-dir",
            str(templates_dir),
            *extra,
        ]

    return _args


# ---------------------------------------------------------------------------
# Remote state
# ---------------------------------------------------------------------------


@pytest.fixture
def zone_state(backends):
    """Return a function that re-reads the remote state of a zone."""

    def _state(zone="z1"):
        secrets = SecretLifecycleManager(backends.store, zone)
        return ZoneStateInspector(backends.engine, secrets).detect_state()

    return _state
