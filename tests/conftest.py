"""
Shared test fixtures for azprov tests.

This module provides common fixtures used across all test types:
- In-memory Azure provider
- Temporary trust store and config directories
- Self-signed management certificates
"""

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from azprov.cert_handler import ManagementCertificate, TrustStore
from azprov.config_manager import ProvisionerConfig
from azprov.models import Credential
from tests.mocks.fake_provider import FakeAzureProvider

# ============================================================================
# PROVIDER FIXTURES
# ============================================================================


@pytest.fixture
def provider_config(tmp_path):
    """Config with a temporary trust store and fast polling."""
    return ProvisionerConfig(
        trust_store_dir=str(tmp_path / "trusted_certs"),
        boot_poll_interval=1,
        boot_wait_timeout=5,
    )


@pytest.fixture
def fake_provider(provider_config):
    """In-memory provider recording every call."""
    return FakeAzureProvider(provider_config)


@pytest.fixture
def credential():
    return Credential(username="azprovadmin", password="S3cure-Passw0rd!")  # noqa: S106


# ============================================================================
# CERTIFICATE FIXTURES
# ============================================================================


def make_certificate(common_name: str = "vm1", days_valid: int = 365) -> ManagementCertificate:
    """Generate a self-signed certificate like the WinRM listener's."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=days_valid))
        .sign(key, hashes.SHA256())
    )
    return ManagementCertificate.from_der(cert.public_bytes(Encoding.DER))


@pytest.fixture
def management_certificate():
    return make_certificate()


@pytest.fixture
def certificate_factory():
    return make_certificate


@pytest.fixture
def trust_store(tmp_path):
    return TrustStore(tmp_path / "trusted_certs")
