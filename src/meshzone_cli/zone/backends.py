"""Wiring of the real AWS and kumactl collaborators.

Commands build their backends through ``create_backends`` so tests can patch
one function and hand in in-memory fakes instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3

from ..shared.logging import get_logger
from .certs import CertificateTool, KumactlCertificateTool
from .prerequisites import AwsCredentialsDetector, KumactlDetector, PrerequisiteChecker
from .secrets import SecretsManagerStore, SecretStore
from .templates import CloudFormationEngine, TemplateEngine

logger = get_logger(__name__)


@dataclass
class ZoneBackends:
    """Remote collaborators for one region."""

    region: str
    engine: TemplateEngine
    store: SecretStore
    certificates: CertificateTool
    prerequisites: PrerequisiteChecker


def create_backends(region: str, session: Any | None = None) -> ZoneBackends:
    """Build CloudFormation, Secrets Manager and kumactl backends for a region.

    Args:
        region: AWS region every call is made in.
        session: Optional boto3 session (a new one is created otherwise).
    """
    session = session or boto3.Session(region_name=region)
    logger.debug("backends_created", region=region)
    return ZoneBackends(
        region=region,
        engine=CloudFormationEngine(session.client("cloudformation", region_name=region)),
        store=SecretsManagerStore(session.client("secretsmanager", region_name=region)),
        certificates=KumactlCertificateTool(),
        prerequisites=PrerequisiteChecker(AwsCredentialsDetector(session), KumactlDetector()),
    )
