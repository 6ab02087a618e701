"""TLS certificate provisioning for the zone control plane.

The control plane serves both the externally reachable load-balancer name
and the internal service-discovery name, so the generated certificate
carries both as subject alternative names.
"""

from __future__ import annotations

import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from cryptography import x509

from ..errors import CertificateError
from ..shared.logging import get_logger

logger = get_logger(__name__)

# Internal service-discovery name of the control plane
CONTROL_PLANE_INTERNAL_HOSTNAME = "controlplane.kongmesh"


@dataclass(frozen=True)
class CertificatePair:
    """Generated key/certificate pair (PEM bytes)."""

    key: bytes = field(repr=False)
    cert: bytes
    hostnames: tuple[str, ...] = ()


def certificate_hostnames(cert_pem: bytes) -> list[str]:
    """Return the DNS and IP subject alternative names of a PEM certificate.

    Raises:
        CertificateError: the payload is not a PEM certificate.
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
    except ValueError as e:
        raise CertificateError(message=f"Stored certificate cannot be parsed: {e}") from e

    try:
        sans = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return []
    names = list(sans.get_values_for_type(x509.DNSName))
    names.extend(str(ip) for ip in sans.get_values_for_type(x509.IPAddress))
    return names


class CertificateTool(Protocol):
    """External certificate generator contract."""

    def generate_server_cert(self, hostnames: list[str]) -> tuple[bytes, bytes]: ...


class KumactlCertificateTool:
    """Generate server certificates with ``kumactl generate tls-certificate``."""

    def __init__(self, kumactl: str = "kumactl", timeout: int = 60):
        self.kumactl = kumactl
        self.timeout = timeout

    def generate_server_cert(self, hostnames: list[str]) -> tuple[bytes, bytes]:
        with tempfile.TemporaryDirectory(prefix="meshzone-tls-") as tmpdir:
            key_file = Path(tmpdir) / "key.pem"
            cert_file = Path(tmpdir) / "cert.pem"

            cmd = [
                self.kumactl,
                "generate",
                "tls-certificate",
                "--type=server",
                "--key-file",
                str(key_file),
                "--cert-file",
                str(cert_file),
            ]
            for hostname in hostnames:
                cmd.extend(["--hostname", hostname])

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    cwd=tmpdir,
                )
            except FileNotFoundError as e:
                raise CertificateError(
                    message="kumactl not found. Install kumactl: https://kuma.io/docs/latest/"
                ) from e
            except subprocess.TimeoutExpired as e:
                raise CertificateError(message="kumactl not responding (timeout)") from e

            if result.returncode != 0:
                raise CertificateError(
                    message=f"kumactl failed to generate certificate: {result.stderr.strip()}"
                )
            if not key_file.exists() or not cert_file.exists():
                raise CertificateError(message="kumactl did not write key.pem/cert.pem")

            return key_file.read_bytes(), cert_file.read_bytes()


class CertificateProvisioner:
    """Produce the control-plane key pair for a discovered address."""

    def __init__(self, tool: CertificateTool):
        self.tool = tool

    def generate(
        self,
        primary_hostname: str,
        secondary_hostname: str = CONTROL_PLANE_INTERNAL_HOSTNAME,
    ) -> CertificatePair:
        """Generate a key/certificate pair covering both hostnames.

        Args:
            primary_hostname: Address discovered from the network stack.
            secondary_hostname: Fixed internal hostname.

        Raises:
            CertificateError: no address was discovered or the tool failed.
        """
        if not primary_hostname:
            raise CertificateError(message="No control plane address to issue a certificate for")

        hostnames = [primary_hostname]
        if secondary_hostname and secondary_hostname != primary_hostname:
            hostnames.append(secondary_hostname)

        logger.info("certificate_generate_started", hostnames=hostnames)
        key, cert = self.tool.generate_server_cert(hostnames)
        if not key or not cert:
            raise CertificateError(message="Certificate tool returned empty key or certificate")
        logger.info("certificate_generated", hostnames=hostnames)
        return CertificatePair(key=key, cert=cert, hostnames=tuple(hostnames))
