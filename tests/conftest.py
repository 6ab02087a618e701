"""Shared test fixtures for meshzone-cli tests.

This module provides in-memory stand-ins for the remote collaborators:
- FakeTemplateEngine: holds "remote" stacks keyed by stack name
- FakeSecretStore: holds "remote" secrets keyed by <zone>/<purpose>
- FakeCertificateTool: issues self-signed certificates for the requested hosts

Each fake keeps a ``calls`` list so tests can assert on ordering.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from meshzone_cli.errors import (
    CertificateError,
    SecretConflictError,
    SecretStoreError,
    TemplateEngineError,
)
from meshzone_cli.shared.logging import configure_logging
from meshzone_cli.zone.backends import ZoneBackends
from meshzone_cli.zone.graph import ZONE_STACKS
from meshzone_cli.zone.options import build_deployment_request
from meshzone_cli.zone.prerequisites import PrerequisiteReport
from meshzone_cli.zone.templates import (
    ApplyResult,
    DestroyResult,
    StackDescription,
    StackState,
)

CP_ADDRESS = "zone1-cp-123456.us-east-2.elb.amazonaws.com"


# =============================================================================
# Fake template engine
# =============================================================================


@dataclass
class FakeStack:
    """One stack as the fake provider sees it."""

    status: str
    template: Path
    parameters: dict[str, str]
    outputs: dict[str, str] = field(default_factory=dict)


class FakeTemplateEngine:
    """In-memory TemplateEngine.

    Stacks whose name ends in ``-vpc`` expose ``ExternalCPAddress``.
    """

    def __init__(self, cp_address: str = CP_ADDRESS):
        self.cp_address = cp_address
        self.stacks: dict[str, FakeStack] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_apply: dict[str, str] = {}
        self.fail_destroy: dict[str, str] = {}
        self.error_on_apply: set[str] = set()
        self.error_on_describe: set[str] = set()
        self.extra_outputs: dict[str, dict[str, str]] = {}

    def add_stack(self, name: str, status: str = "CREATE_COMPLETE", **outputs: str) -> None:
        self.stacks[name] = FakeStack(status, Path(f"{name}.yaml"), {}, dict(outputs))

    def apply(
        self,
        stack_name: str,
        template: Path,
        parameters: dict[str, str],
        capabilities: Sequence[str] = ("CAPABILITY_IAM",),
    ) -> ApplyResult:
        self.calls.append(("apply", stack_name))
        if stack_name in self.error_on_apply:
            raise TemplateEngineError(message=f"Throttled applying {stack_name}", stack=stack_name)

        if stack_name in self.fail_apply:
            self.stacks[stack_name] = FakeStack("ROLLBACK_COMPLETE", template, dict(parameters))
            return ApplyResult(
                StackState.FAILED,
                status="ROLLBACK_COMPLETE",
                reason=self.fail_apply[stack_name],
            )

        outputs = dict(self.extra_outputs.get(stack_name, {}))
        if stack_name.endswith("-vpc") and self.cp_address:
            outputs.setdefault("ExternalCPAddress", self.cp_address)
        status = "UPDATE_COMPLETE" if stack_name in self.stacks else "CREATE_COMPLETE"
        self.stacks[stack_name] = FakeStack(status, template, dict(parameters), outputs)
        return ApplyResult(StackState.APPLIED, dict(outputs), status)

    def destroy(self, stack_name: str) -> DestroyResult:
        self.calls.append(("destroy", stack_name))
        if stack_name in self.fail_destroy:
            self.stacks[stack_name].status = "DELETE_FAILED"
            return DestroyResult(
                StackState.FAILED, status="DELETE_FAILED", reason=self.fail_destroy[stack_name]
            )
        self.stacks.pop(stack_name, None)
        return DestroyResult(StackState.DELETED)

    def describe(self, stack_name: str) -> StackDescription:
        self.calls.append(("describe", stack_name))
        if stack_name in self.error_on_describe:
            raise TemplateEngineError(message=f"Cannot describe {stack_name}", stack=stack_name)
        stack = self.stacks.get(stack_name)
        if stack is None:
            return StackDescription(exists=False)
        return StackDescription(True, stack.status, dict(stack.outputs))

    def mutating_calls(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "describe"]


# =============================================================================
# Fake secret store
# =============================================================================


class FakeSecretStore:
    """In-memory SecretStore."""

    def __init__(self):
        self.secrets: dict[str, bytes] = {}
        self.descriptions: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_delete: set[str] = set()

    @staticmethod
    def reference(key: str) -> str:
        return f"arn:aws:secretsmanager:us-east-2:123456789012:secret:{key}"

    def put(self, key: str, payload: bytes, description: str = "") -> str:
        self.calls.append(("put", key))
        if key in self.secrets:
            raise SecretConflictError(key=key)
        self.secrets[key] = payload
        self.descriptions[key] = description
        return self.reference(key)

    def get(self, reference: str) -> bytes:
        key = reference.rsplit(":", 1)[-1]
        return self.secrets[key]

    def lookup(self, key: str) -> str | None:
        return self.reference(key) if key in self.secrets else None

    def exists(self, key: str) -> bool:
        return key in self.secrets

    def delete(self, key: str) -> bool:
        self.calls.append(("delete", key))
        if key in self.fail_delete:
            raise SecretStoreError(message=f"Access denied deleting {key}", key=key)
        return self.secrets.pop(key, None) is not None


# =============================================================================
# Fake certificate tool
# =============================================================================


def make_certificate(hostnames: Sequence[str]) -> tuple[bytes, bytes]:
    """Issue a short-lived self-signed server certificate for hostnames."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "kong-mesh-control-plane")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(h) for h in hostnames]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return key_pem, cert.public_bytes(serialization.Encoding.PEM)


class FakeCertificateTool:
    """Issues real self-signed certificates and records the requested hostnames."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: list[list[str]] = []

    def generate_server_cert(self, hostnames: list[str]) -> tuple[bytes, bytes]:
        self.requests.append(list(hostnames))
        if self.fail:
            raise CertificateError(message="kumactl failed to generate certificate: boom")
        return make_certificate(hostnames)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep structlog output out of captured command output."""
    configure_logging(level="critical")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the CLI at an empty config and clear MESHZONE_* variables."""
    for name in list(os.environ):
        if name.startswith("MESHZONE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MESHZONE_CONFIG", str(tmp_path / "no-config.yaml"))


@pytest.fixture
def engine() -> FakeTemplateEngine:
    return FakeTemplateEngine()


@pytest.fixture
def store() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def cert_tool() -> FakeCertificateTool:
    return FakeCertificateTool()


@pytest.fixture
def issue_certificate():
    """Factory returning a PEM key/certificate pair for a list of hostnames."""
    return make_certificate


@pytest.fixture
def templates_dir(tmp_path) -> Path:
    """A templates directory containing every zone template."""
    root = tmp_path / "deploy"
    for definition in ZONE_STACKS:
        path = root / definition.template
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("AWSTemplateFormatVersion: '2010-09-09'\nResources: {}\n")
    return root


@pytest.fixture
def license_file(tmp_path) -> Path:
    path = tmp_path / "license.json"
    path.write_text('{"license": "test"}')
    return path


@pytest.fixture
def make_request(templates_dir):
    """Factory for DeploymentRequest with test defaults."""

    def _make(**overrides: Any):
        values: dict[str, Any] = {
            "zone_name": "zone1",
            "kds_address": "grpcs://us.mesh.sync.konghq.tech:443",
            "cp_id": "cp-1234",
            "connectivity_token": "spat_token",
            "settle_seconds": 0,
            "templates_dir": templates_dir,
        }
        values.update(overrides)
        return build_deployment_request(**values)

    return _make


@pytest.fixture
def prerequisites() -> MagicMock:
    checker = MagicMock()
    checker.ensure.return_value = PrerequisiteReport()
    checker.check.return_value = PrerequisiteReport()
    return checker


@pytest.fixture
def backends(engine, store, cert_tool, prerequisites) -> ZoneBackends:
    return ZoneBackends(
        region="us-east-2",
        engine=engine,
        store=store,
        certificates=cert_tool,
        prerequisites=prerequisites,
    )
