"""Shared fixtures: certificates built on the fly and fake collaborators."""

import ipaddress
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from appcert.certificate import parse_certificate
from appcert.models import CertificateRecord

_keys: Dict[int, rsa.RSAPrivateKey] = {}


def _key(key_size: int) -> rsa.RSAPrivateKey:
    # Key generation dominates test time; every certificate of a size shares one key.
    if key_size not in _keys:
        _keys[key_size] = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return _keys[key_size]


def build_certificate_der(
    common_name: str,
    key_size: int = 2048,
    dns_names: Sequence[str] = (),
    ip_addresses: Sequence[str] = (),
    application_uri: Optional[str] = None,
    organization: Optional[str] = None,
    domain_components: Sequence[str] = (),
) -> bytes:
    """Create a self-signed certificate (DER). Each call yields a new thumbprint."""
    private_key = _key(key_size)
    attributes = [x509.NameAttribute(NameOID.DOMAIN_COMPONENT, dc) for dc in domain_components]
    if organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    name = x509.Name(attributes)

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime.now(timezone.utc) - timedelta(days=1))
        .not_valid_after(datetime.now(timezone.utc) + timedelta(days=365))
    )

    general_names: List[x509.GeneralName] = []
    if application_uri:
        general_names.append(x509.UniformResourceIdentifier(application_uri))
    general_names.extend(x509.DNSName(d) for d in dns_names)
    general_names.extend(x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses)
    if general_names:
        builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)

    cert = builder.sign(private_key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def cert_factory():
    """Build parsed certificates: cert_factory("app", dns_names=[...], has_private_key=True)."""

    def factory(common_name: str = "app", has_private_key: bool = False, **kwargs) -> CertificateRecord:
        return parse_certificate(build_certificate_der(common_name, **kwargs), has_private_key=has_private_key)

    return factory


@pytest.fixture
def record_factory():
    """Build records with hand-picked thumbprints, for store scenarios."""

    def factory(
        thumbprint: str,
        subject: str = "CN=X",
        application_uri: Optional[str] = None,
        has_private_key: bool = False,
    ) -> CertificateRecord:
        components = [c.strip() for c in subject.split(",")]
        return CertificateRecord(
            thumbprint=thumbprint,
            subject=subject,
            subject_components=components,
            domains=[],
            application_uri=application_uri,
            key_size=2048,
            raw_data=thumbprint.encode(),
            has_private_key=has_private_key,
        )

    return factory


class FakeResolver:
    """HostResolver with fixed answers."""

    def __init__(self, host_name: str = "host1", addresses: Sequence[str] = ("10.0.0.5",)):
        self._host_name = host_name
        self._addresses = list(addresses)
        self.calls = 0

    def host_name(self) -> str:
        return self._host_name

    def resolve_addresses(self, host_name: str) -> List[str]:
        self.calls += 1
        return list(self._addresses)


class ScriptedGate:
    """ApprovalGate answering from a list and recording the prompts."""

    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def prompt(self, message: str, is_yes_no: bool = True) -> bool:
        self.prompts.append(message)
        return self.answers.pop(0) if self.answers else False


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def gate_factory():
    return ScriptedGate


@pytest.fixture
def resolver_factory():
    return FakeResolver


@pytest.fixture
def der_factory():
    return build_certificate_der
