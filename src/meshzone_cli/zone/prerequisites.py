"""Prerequisite detection for zone commands.

Deploy needs kumactl (certificate generation) and working AWS credentials;
teardown only needs AWS credentials. Everything is checked before any
remote side effect.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import BotoCoreError

from ..errors import PrerequisiteError


@dataclass
class KumactlInfo:
    """kumactl detection result."""

    kumactl_available: bool
    kumactl_version: str | None = None
    error: str | None = None


class KumactlDetector:
    """Detect the kumactl binary."""

    def __init__(self, binary: str = "kumactl"):
        self.binary = binary

    def detect(self) -> KumactlInfo:
        """Check for kumactl on PATH and that it runs."""
        if not shutil.which(self.binary):
            return KumactlInfo(
                kumactl_available=False,
                error="kumactl not found. Please install kumactl: https://kuma.io/docs/latest/",
            )

        try:
            result = subprocess.run(
                [self.binary, "version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except subprocess.TimeoutExpired:
            return KumactlInfo(kumactl_available=False, error="kumactl not responding (timeout)")

        if result.returncode != 0:
            return KumactlInfo(
                kumactl_available=False,
                error=f"kumactl error: {result.stderr.strip()}",
            )

        lines = result.stdout.strip().splitlines()
        return KumactlInfo(kumactl_available=True, kumactl_version=lines[0] if lines else None)


@dataclass
class AwsCredentialsInfo:
    """AWS credential detection result."""

    credentials_available: bool
    method: str | None = None
    region: str | None = None
    error: str | None = None


class AwsCredentialsDetector:
    """Detect resolvable AWS credentials for a boto3 session."""

    def __init__(self, session: Any):
        """Initialize detector.

        Args:
            session: boto3.Session used for all remote calls.
        """
        self.session = session

    def detect(self) -> AwsCredentialsInfo:
        try:
            credentials = self.session.get_credentials()
        except BotoCoreError as e:
            return AwsCredentialsInfo(credentials_available=False, error=str(e))

        if credentials is None:
            return AwsCredentialsInfo(
                credentials_available=False,
                error="AWS credentials not found. Configure the AWS CLI or set AWS_PROFILE.",
            )
        return AwsCredentialsInfo(
            credentials_available=True,
            method=getattr(credentials, "method", None),
            region=self.session.region_name,
        )


@dataclass
class PrerequisiteReport:
    """Combined result of all checks."""

    kumactl: KumactlInfo | None = None
    aws: AwsCredentialsInfo | None = None
    missing: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing


class PrerequisiteChecker:
    """Run the checks a command needs."""

    def __init__(
        self,
        aws: AwsCredentialsDetector,
        kumactl: KumactlDetector | None = None,
    ):
        self.aws = aws
        self.kumactl = kumactl or KumactlDetector()

    def check(self, require_kumactl: bool = True) -> PrerequisiteReport:
        report = PrerequisiteReport()

        report.aws = self.aws.detect()
        if not report.aws.credentials_available:
            report.missing.append(report.aws.error or "AWS credentials not available")

        if require_kumactl:
            report.kumactl = self.kumactl.detect()
            if not report.kumactl.kumactl_available:
                report.missing.append(report.kumactl.error or "kumactl not available")

        return report

    def ensure(self, require_kumactl: bool = True) -> PrerequisiteReport:
        """Like check, but raise when anything is missing.

        Raises:
            PrerequisiteError: listing every missing prerequisite.
        """
        report = self.check(require_kumactl)
        if not report.ok:
            raise PrerequisiteError(
                message="Prerequisites not met: " + "; ".join(report.missing),
                missing=tuple(report.missing),
            )
        return report
