"""Remote-management certificate handling.

A freshly provisioned VM exposes WinRM over HTTPS with a self-signed
certificate. This module fetches that certificate from the VM's management
endpoint and installs it into a local trust store so later remote
management sessions can verify the endpoint.

Security Requirements:
- Trust store directory is 0700, certificate files are 0600
- Certificates must parse as X.509 before they are stored
- Installation is keyed by thumbprint and never overwrites an entry
"""

import logging
import os
import ssl
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding

from azprov.exceptions import CertificateError

logger = logging.getLogger(__name__)

THUMBPRINT_ALGORITHM = "sha1"
EXPIRATION_WARNING_DAYS = 30


@dataclass(frozen=True)
class ManagementCertificate:
    """A VM's remote-management certificate.

    Attributes:
        thumbprint: Upper-case hex digest of the DER encoding
        thumbprint_algorithm: Digest used for the thumbprint
        data: DER encoded certificate bytes
    """

    thumbprint: str
    thumbprint_algorithm: str
    data: bytes

    @classmethod
    def from_der(cls, data: bytes) -> "ManagementCertificate":
        """Build from DER bytes.

        Raises:
            CertificateError: If the bytes are not a valid X.509 certificate
        """
        try:
            cert = x509.load_der_x509_certificate(data)
        except ValueError as e:
            raise CertificateError(f"Invalid certificate data: {e}") from e
        return cls(
            thumbprint=cert.fingerprint(hashes.SHA1()).hex().upper(),  # noqa: S303
            thumbprint_algorithm=THUMBPRINT_ALGORITHM,
            data=data,
        )

    @classmethod
    def from_pem(cls, pem: str | bytes) -> "ManagementCertificate":
        """Build from a PEM document.

        Raises:
            CertificateError: If the PEM does not hold a valid certificate
        """
        if isinstance(pem, str):
            pem = pem.encode("ascii")
        try:
            cert = x509.load_pem_x509_certificate(pem)
        except ValueError as e:
            raise CertificateError(f"Invalid PEM certificate: {e}") from e
        return cls.from_der(cert.public_bytes(Encoding.DER))

    def to_x509(self) -> x509.Certificate:
        return x509.load_der_x509_certificate(self.data)

    def to_pem(self) -> bytes:
        return self.to_x509().public_bytes(Encoding.PEM)

    @property
    def subject(self) -> str:
        return self.to_x509().subject.rfc4514_string()

    @property
    def not_valid_after(self) -> datetime:
        return self.to_x509().not_valid_after_utc


def fetch_management_certificate(
    host: str, port: int, timeout: float = 30.0
) -> ManagementCertificate:
    """Fetch the certificate presented by a management endpoint.

    The endpoint uses a self-signed certificate, so the handshake does not
    verify it; trust is established by installing the returned certificate.

    Args:
        host: Endpoint host name or IP address
        port: Endpoint TLS port (WinRM HTTPS is 5986)
        timeout: Connection timeout in seconds

    Returns:
        ManagementCertificate

    Raises:
        CertificateError: If the endpoint cannot be reached or returns no certificate
    """
    logger.info(f"Fetching management certificate from {host}:{port}")
    try:
        pem = ssl.get_server_certificate((host, port), timeout=timeout)
    except (OSError, ssl.SSLError) as e:
        raise CertificateError(
            f"Could not retrieve management certificate from {host}:{port}: {e}"
        ) from e
    return ManagementCertificate.from_pem(pem)


class TrustStore:
    """Directory of trusted certificates, one ``<THUMBPRINT>.pem`` per entry."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def path_for(self, thumbprint: str) -> Path:
        return self.directory / f"{thumbprint.upper()}.pem"

    def contains(self, thumbprint: str) -> bool:
        """Check whether a certificate with this thumbprint is trusted."""
        return self.path_for(thumbprint).exists()

    def install(self, certificate: ManagementCertificate) -> Path:
        """Install a certificate.

        Returns:
            Path of the stored certificate

        Raises:
            CertificateError: If an entry with the thumbprint exists or writing fails
        """
        path = self.path_for(certificate.thumbprint)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            os.chmod(self.directory, 0o700)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(certificate.to_pem())
        except FileExistsError as e:
            raise CertificateError(
                f"Certificate {certificate.thumbprint} is already trusted"
            ) from e
        except OSError as e:
            raise CertificateError(f"Failed to install certificate: {e}") from e

        logger.info(f"Trusted certificate {certificate.thumbprint} ({certificate.subject})")
        return path

    def list_thumbprints(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.pem"))


def days_until_expiry(certificate: ManagementCertificate, now: datetime | None = None) -> int:
    """Days until the certificate expires (negative once expired)."""
    now = now or datetime.now(UTC)
    return (certificate.not_valid_after - now).days


__all__ = [
    "ManagementCertificate",
    "TrustStore",
    "days_until_expiry",
    "fetch_management_certificate",
]
