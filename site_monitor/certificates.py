"""
TLS peer certificate inspection for Site Monitor.
"""

import ipaddress
import ssl
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

from cryptography import x509
from cryptography.x509.verification import PolicyBuilder, Store, VerificationError

from site_monitor.logger import get_logger
from site_monitor.models import CertInfo

logger = get_logger("certificates")

TrustAnchorProvider = Callable[[], List[x509.Certificate]]


class TrustStoreError(Exception):
    """Trust anchors could not be loaded."""


class StaticTrustStore:
    """Trust-anchor provider returning a fixed set of root certificates."""

    def __init__(self, certificates: Iterable[x509.Certificate]) -> None:
        self._certificates = list(certificates)

    def __call__(self) -> List[x509.Certificate]:
        return list(self._certificates)


def load_system_trust_anchors() -> List[x509.Certificate]:
    """
    Load the operating system's default root certificates.

    Reads the CA bundle and CA directory OpenSSL is configured with (honouring
    ``SSL_CERT_FILE``/``SSL_CERT_DIR``). Nothing is cached between calls.

    Raises:
        TrustStoreError: No root certificate could be loaded
    """
    paths = ssl.get_default_verify_paths()
    anchors: List[x509.Certificate] = []

    try:
        if paths.cafile:
            anchors.extend(x509.load_pem_x509_certificates(Path(paths.cafile).read_bytes()))
    except (OSError, ValueError) as e:
        raise TrustStoreError(f"cannot read CA file {paths.cafile}: {e}") from e

    if not anchors and paths.capath and Path(paths.capath).is_dir():
        for entry in sorted(Path(paths.capath).iterdir()):
            if not entry.is_file():
                continue
            try:
                anchors.extend(x509.load_pem_x509_certificates(entry.read_bytes()))
            except (OSError, ValueError) as e:
                logger.debug(f"Skipping {entry} in CA directory: {e}")

    if not anchors:
        raise TrustStoreError("no root certificates found in the system trust store")

    return anchors


def inspect_peer_chain(
    der_chain: Sequence[bytes],
    host: str,
    trust_anchors: Optional[TrustAnchorProvider] = None,
    now: Optional[datetime] = None,
) -> CertInfo:
    """
    Inspect a DER encoded peer chain as received during the TLS handshake.

    Args:
        der_chain: Leaf certificate first, followed by intermediates
        host: Name the leaf certificate must be valid for
        trust_anchors: Root certificate provider, system store by default
        now: Verification time, current time by default

    Returns:
        Certificate information; problems are reported through ``is_valid``
    """
    try:
        leaf = x509.load_der_x509_certificate(der_chain[0])
    except ValueError as e:
        return CertInfo(
            subject="",
            issuer="",
            valid_from=None,
            valid_to=None,
            is_valid=False,
            error_msg=f"unable to parse peer certificate: {e}",
        )

    chain = [leaf]
    for der in der_chain[1:]:
        try:
            chain.append(x509.load_der_x509_certificate(der))
        except ValueError as e:
            logger.debug(f"Ignoring unparsable intermediate certificate from {host}: {e}")

    return inspect_certificate(chain, host, trust_anchors=trust_anchors, now=now)


def inspect_certificate(
    chain: Sequence[x509.Certificate],
    host: str,
    trust_anchors: Optional[TrustAnchorProvider] = None,
    now: Optional[datetime] = None,
) -> CertInfo:
    """
    Describe and validate the leaf certificate of a peer chain.

    Validation stops at the first failing rule, in this order: not yet valid,
    expired, chain and hostname verification against the trust anchors.

    Args:
        chain: Leaf certificate first, followed by intermediates
        host: Name the leaf certificate must be valid for
        trust_anchors: Root certificate provider, system store by default
        now: Verification time, current time by default

    Returns:
        Certificate information; never raises for certificate problems
    """
    leaf = chain[0]
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    trust_anchors = trust_anchors or load_system_trust_anchors

    not_before = leaf.not_valid_before_utc
    not_after = leaf.not_valid_after_utc

    def result(error_msg: Optional[str] = None) -> CertInfo:
        return CertInfo(
            subject=leaf.subject.rfc4514_string(),
            issuer=leaf.issuer.rfc4514_string(),
            valid_from=not_before,
            valid_to=not_after,
            dns_names=tuple(_get_dns_names(leaf)),
            is_valid=error_msg is None,
            error_msg=error_msg,
        )

    if now < not_before:
        return result(f"certificate not yet valid: {not_before}")
    if now > not_after:
        return result(f"certificate has expired: {not_after}")

    try:
        roots = trust_anchors()
        if not roots:
            raise TrustStoreError("no root certificates available")
        store = Store(roots)
    except (TrustStoreError, OSError, ValueError) as e:
        return result(f"error loading system root certificates: {e}")

    try:
        verifier = PolicyBuilder().store(store).time(now).build_server_verifier(_subject(host))
        verifier.verify(leaf, list(chain[1:]))
    except (VerificationError, ValueError) as e:
        return result(f"hostname verification failed: {e}")

    return result()


def _subject(host: str) -> Union[x509.DNSName, x509.IPAddress]:
    """Expected identity for ``host``, IP literals verify against IP SANs."""
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        return x509.DNSName(host)


def _get_dns_names(cert: x509.Certificate) -> List[str]:
    """Extract DNS Subject Alternative Names from certificate."""
    try:
        san_ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san_ext.value.get_values_for_type(x509.DNSName)
