"""Unit tests for zone state detection."""

from __future__ import annotations

import pytest

from meshzone_cli.zone.graph import StackRole
from meshzone_cli.zone.secrets import SecretLifecycleManager, SecretPurpose
from meshzone_cli.zone.state import ZoneStateInspector


@pytest.mark.cli_unit
class TestZoneStateInspector:
    """Tests for ZoneStateInspector.detect_state."""

    def test_nothing_deployed(self, engine, store):
        """Test an empty zone reports every stack absent."""
        state = ZoneStateInspector(engine, SecretLifecycleManager(store, "zone1")).detect_state()

        assert state.deployed is False
        assert len(state.absent_stacks) == 5
        assert len(state.absent_secrets) == 4

    def test_partial_zone(self, engine, store):
        """Test a partial zone reports what exists."""
        engine.add_stack("zone1-vpc", ExternalCPAddress="cp.example.com")
        engine.add_stack("zone1-control-plane", status="ROLLBACK_COMPLETE")
        secrets = SecretLifecycleManager(store, "zone1")
        secrets.create(SecretPurpose.GLOBAL_TOKEN, "t")

        state = ZoneStateInspector(engine, secrets).detect_state()

        assert state.present_stacks == ["zone1-vpc", "zone1-control-plane"]
        assert state.present_secrets == ["zone1/global-token"]
        assert state.stack(StackRole.VPC).outputs == {"ExternalCPAddress": "cp.example.com"}
        assert state.stack(StackRole.CONTROL_PLANE).status == "ROLLBACK_COMPLETE"

    def test_describe_error_is_unknown(self, engine, store):
        """Test a describe error leaves the stack state unknown."""
        engine.error_on_describe.add("zone1-redis")
        state = ZoneStateInspector(engine, SecretLifecycleManager(store, "zone1")).detect_state()

        redis = state.stack(StackRole.REDIS)
        assert redis.exists is None
        assert "zone1-redis" not in state.absent_stacks
        assert "zone1-redis" not in state.present_stacks

    def test_reads_only(self, engine, store):
        """Test state detection never mutates anything."""
        ZoneStateInspector(engine, SecretLifecycleManager(store, "zone1")).detect_state()
        assert engine.mutating_calls() == []
        assert store.calls == []
