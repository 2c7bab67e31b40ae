"""Unit tests for cert_handler module.

Certificates are generated on the fly (self-signed, like the VM's WinRM
listener certificate).
"""

import hashlib
import ssl
import stat
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from azprov.cert_handler import (
    ManagementCertificate,
    TrustStore,
    days_until_expiry,
    fetch_management_certificate,
)
from azprov.exceptions import CertificateError


class TestManagementCertificate:
    def test_thumbprint_is_uppercase_sha1_of_der(self, management_certificate):
        expected = hashlib.sha1(management_certificate.data).hexdigest().upper()  # noqa: S324

        assert management_certificate.thumbprint == expected
        assert management_certificate.thumbprint_algorithm == "sha1"

    def test_pem_round_trip_keeps_thumbprint(self, management_certificate):
        again = ManagementCertificate.from_pem(management_certificate.to_pem().decode())
        assert again.thumbprint == management_certificate.thumbprint

    def test_subject(self, certificate_factory):
        assert certificate_factory(common_name="vm7").subject == "CN=vm7"

    def test_invalid_der(self):
        with pytest.raises(CertificateError):
            ManagementCertificate.from_der(b"not a certificate")

    def test_invalid_pem(self):
        with pytest.raises(CertificateError):
            ManagementCertificate.from_pem(
                "-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"
            )


class TestFetchManagementCertificate:
    def test_fetch(self, management_certificate):
        pem = management_certificate.to_pem().decode()
        with patch("azprov.cert_handler.ssl.get_server_certificate", return_value=pem) as mock_get:
            certificate = fetch_management_certificate("20.1.2.3", 5986, timeout=5)

        mock_get.assert_called_once_with(("20.1.2.3", 5986), timeout=5)
        assert certificate == management_certificate

    def test_unreachable(self):
        with patch(
            "azprov.cert_handler.ssl.get_server_certificate",
            side_effect=ConnectionRefusedError("refused"),
        ):
            with pytest.raises(CertificateError, match="20.1.2.3:5986"):
                fetch_management_certificate("20.1.2.3", 5986)

    def test_tls_failure(self):
        with patch(
            "azprov.cert_handler.ssl.get_server_certificate", side_effect=ssl.SSLError("bad")
        ):
            with pytest.raises(CertificateError):
                fetch_management_certificate("20.1.2.3", 5986)


class TestTrustStore:
    def test_install(self, trust_store, management_certificate):
        path = trust_store.install(management_certificate)

        assert path.name == f"{management_certificate.thumbprint}.pem"
        assert trust_store.contains(management_certificate.thumbprint)
        assert trust_store.contains(management_certificate.thumbprint.lower())
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert stat.S_IMODE(trust_store.directory.stat().st_mode) == 0o700
        assert ManagementCertificate.from_pem(path.read_bytes()) == management_certificate

    def test_install_twice_refused(self, trust_store, management_certificate):
        trust_store.install(management_certificate)

        with pytest.raises(CertificateError, match="already trusted"):
            trust_store.install(management_certificate)

    def test_list_thumbprints(self, trust_store, certificate_factory):
        assert trust_store.list_thumbprints() == []

        first, second = certificate_factory("a"), certificate_factory("b")
        trust_store.install(first)
        trust_store.install(second)

        assert trust_store.list_thumbprints() == sorted([first.thumbprint, second.thumbprint])

    def test_expanduser(self):
        assert "~" not in str(TrustStore("~/.azprov/trusted_certs").directory)


class TestExpiry:
    def test_days_until_expiry(self, certificate_factory):
        certificate = certificate_factory(days_valid=10)
        now = datetime.now(UTC)

        assert days_until_expiry(certificate, now=now) in (9, 10)
        assert days_until_expiry(certificate, now=now + timedelta(days=20)) < 0
