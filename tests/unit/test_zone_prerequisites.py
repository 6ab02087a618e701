"""Unit tests for zone prerequisite detection."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import NoRegionError

from meshzone_cli.errors import PrerequisiteError
from meshzone_cli.zone.prerequisites import (
    AwsCredentialsDetector,
    KumactlDetector,
    PrerequisiteChecker,
)


def _session(credentials=True):
    session = MagicMock()
    session.region_name = "us-east-2"
    session.get_credentials.return_value = MagicMock(method="env") if credentials else None
    return session


@pytest.mark.cli_unit
class TestKumactlDetector:
    """Tests for KumactlDetector."""

    def test_detect_available(self):
        """Test an installed kumactl is detected."""
        with patch("shutil.which", return_value="/usr/local/bin/kumactl"):
            with patch("subprocess.run") as mock_run:
                mock_run.return_value = MagicMock(
                    returncode=0, stdout="Kong Mesh: 2.9.1\nKuma: 2.9.1\n", stderr=""
                )
                info = KumactlDetector().detect()

        assert info.kumactl_available is True
        assert info.kumactl_version == "Kong Mesh: 2.9.1"

    def test_detect_not_installed(self):
        """Test a missing kumactl is reported."""
        with patch("shutil.which", return_value=None):
            info = KumactlDetector().detect()

        assert info.kumactl_available is False
        assert "kumactl not found" in info.error

    def test_detect_timeout(self):
        """Test a kumactl timeout is reported."""
        with patch("shutil.which", return_value="/usr/local/bin/kumactl"):
            with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("kumactl", 10)):
                info = KumactlDetector().detect()

        assert info.kumactl_available is False
        assert "timeout" in info.error

    def test_detect_error_exit(self):
        """Test a failing kumactl is reported."""
        with patch("shutil.which", return_value="/usr/local/bin/kumactl"):
            with patch("subprocess.run") as mock_run:
                mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="broken")
                info = KumactlDetector().detect()

        assert info.kumactl_available is False
        assert "broken" in info.error


@pytest.mark.cli_unit
class TestAwsCredentialsDetector:
    """Tests for AwsCredentialsDetector."""

    def test_credentials_found(self):
        """Test resolved AWS credentials pass."""
        info = AwsCredentialsDetector(_session()).detect()
        assert info.credentials_available is True
        assert info.method == "env"
        assert info.region == "us-east-2"

    def test_no_credentials(self):
        """Test missing AWS credentials are reported."""
        info = AwsCredentialsDetector(_session(credentials=False)).detect()
        assert info.credentials_available is False
        assert "AWS credentials not found" in info.error

    def test_botocore_error(self):
        """Test a botocore error while resolving credentials is reported."""
        session = _session()
        session.get_credentials.side_effect = NoRegionError()
        info = AwsCredentialsDetector(session).detect()
        assert info.credentials_available is False


@pytest.mark.cli_unit
class TestPrerequisiteChecker:
    """Tests for PrerequisiteChecker."""

    def _kumactl(self, available=True):
        detector = MagicMock()
        detector.detect.return_value = MagicMock(
            kumactl_available=available, error=None if available else "kumactl not found"
        )
        return detector

    def test_all_present(self):
        """Test ensure passes when everything is present."""
        checker = PrerequisiteChecker(AwsCredentialsDetector(_session()), self._kumactl())
        assert checker.ensure().ok is True

    def test_every_missing_item_reported(self):
        """Test every missing prerequisite is reported at once."""
        checker = PrerequisiteChecker(
            AwsCredentialsDetector(_session(credentials=False)), self._kumactl(False)
        )
        with pytest.raises(PrerequisiteError) as exc_info:
            checker.ensure()
        assert len(exc_info.value.missing) == 2

    def test_teardown_does_not_need_kumactl(self):
        """Test kumactl is not checked when not required."""
        kumactl = self._kumactl(False)
        checker = PrerequisiteChecker(AwsCredentialsDetector(_session()), kumactl)

        report = checker.ensure(require_kumactl=False)
        assert report.ok is True
        kumactl.detect.assert_not_called()
