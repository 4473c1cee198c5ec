"""
Shared fixtures for Site Monitor tests.
"""

import ipaddress
import ssl
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID


class CertificateAuthority:
    """Throwaway CA issuing server certificates for tests."""

    def __init__(
        self, name: str = "Site Monitor Test Root", parent: Optional["CertificateAuthority"] = None
    ) -> None:
        self.key = ec.generate_private_key(ec.SECP256R1())
        self.name = x509.Name(
            [
                x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Site Monitor Tests"),
                x509.NameAttribute(NameOID.COMMON_NAME, name),
            ]
        )
        issuer_name = parent.name if parent else self.name
        issuer_key = parent.key if parent else self.key
        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(self.name)
            .issuer_name(issuer_name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(self.key.public_key()), critical=False
            )
        )
        if parent:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(parent.key.public_key()),
                critical=False,
            )
        self.certificate = builder.sign(issuer_key, hashes.SHA256())

    def intermediate(self, name: str = "Site Monitor Test Intermediate") -> "CertificateAuthority":
        """Create an intermediate CA signed by this one."""
        return CertificateAuthority(name, parent=self)

    def issue(
        self,
        dns_names: Tuple[str, ...] = ("site.test",),
        ip_addresses: Tuple[str, ...] = (),
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
    ) -> x509.Certificate:
        """Issue a server certificate."""
        _, certificate = self.issue_with_key(dns_names, ip_addresses, not_before, not_after)
        return certificate

    def issue_with_key(
        self,
        dns_names: Tuple[str, ...] = ("site.test",),
        ip_addresses: Tuple[str, ...] = (),
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
    ) -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
        """Issue a server certificate together with its private key."""
        now = datetime.now(timezone.utc)
        key = ec.generate_private_key(ec.SECP256R1())
        common_name = dns_names[0] if dns_names else ip_addresses[0]
        names: List[x509.GeneralName] = [x509.DNSName(name) for name in dns_names]
        names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]

        certificate = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
            .issuer_name(self.name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before or now - timedelta(days=1))
            .not_valid_after(not_after or now + timedelta(days=90))
            .add_extension(x509.SubjectAlternativeName(names), critical=False)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(self.key.public_key()),
                critical=False,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
            )
            .sign(self.key, hashes.SHA256())
        )
        return key, certificate


class FakeNativeCertificate:
    """Stands in for the certificate objects of the native ssl layer."""

    def __init__(self, der: bytes) -> None:
        self._der = der

    def public_bytes(self) -> str:
        return ssl.DER_cert_to_PEM_cert(self._der)


class FakeNativeSSLObject:
    """Stands in for the native ssl object wrapped by ``ssl.SSLObject``."""

    def __init__(self, chain: List[bytes]) -> None:
        self._chain = chain

    def get_unverified_chain(self) -> List[FakeNativeCertificate]:
        return [FakeNativeCertificate(der) for der in self._chain]


class FakeSSLObject:
    """Stands in for the ssl object of a TLS connection."""

    def __init__(self, chain: List[bytes], expose_chain: bool = True, native: bool = False) -> None:
        self._chain = chain
        if expose_chain:
            self.get_unverified_chain = lambda: list(self._chain)
        if native:
            self._sslobj = FakeNativeSSLObject(chain)

    def getpeercert(self, binary_form: bool = False) -> Optional[bytes]:
        return self._chain[0] if self._chain else None


class FakeNetworkStream:
    """Stands in for the ``network_stream`` response extension."""

    def __init__(self, ssl_object: Optional[FakeSSLObject]) -> None:
        self._ssl_object = ssl_object

    def get_extra_info(self, info: str) -> Optional[FakeSSLObject]:
        return self._ssl_object if info == "ssl_object" else None


@pytest.fixture(scope="session")
def ca() -> CertificateAuthority:
    """Test certificate authority."""
    return CertificateAuthority()


@pytest.fixture(scope="session")
def other_ca() -> CertificateAuthority:
    """Certificate authority that is not trusted by the tests."""
    return CertificateAuthority("Untrusted Test Root")
