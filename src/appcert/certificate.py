"""Certificate parsing and distinguished name handling."""

import logging
import warnings
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519
from cryptography.x509.oid import ExtensionOID, NameOID
from cryptography.utils import CryptographyDeprecationWarning

from appcert.exceptions import CertificateParseError, ConfigurationError
from appcert.models import CertificateRecord

logger = logging.getLogger(__name__)

PEM_MARKER = b"-----BEGIN CERTIFICATE-----"

# Short names used when decomposing subjects; anything else falls back to the dotted OID.
_ATTRIBUTE_NAMES = {
    NameOID.COMMON_NAME: "CN",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.COUNTRY_NAME: "C",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.LOCALITY_NAME: "L",
    NameOID.DOMAIN_COMPONENT: "DC",
    NameOID.STREET_ADDRESS: "STREET",
    NameOID.USER_ID: "UID",
    NameOID.EMAIL_ADDRESS: "E",
    NameOID.SERIAL_NUMBER: "SERIALNUMBER",
}

# Aliases seen in hand-written subject names.
_TYPE_ALIASES = {
    "S": "ST",
    "EMAILADDRESS": "E",
    "EMAIL": "E",
    "0.9.2342.19200300.100.1.25": "DC",
}


def _load_x509(data: bytes) -> x509.Certificate:
    with warnings.catch_warnings():
        # Non-positive serial numbers only warn; they do not block parsing.
        warnings.simplefilter("ignore", CryptographyDeprecationWarning)
        try:
            if PEM_MARKER in data:
                return x509.load_pem_x509_certificate(data)
            return x509.load_der_x509_certificate(data)
        except ValueError as e:
            raise CertificateParseError(f"Could not decode certificate: {e}") from e


def _name_components(name: x509.Name) -> List[str]:
    components: List[str] = []
    for rdn in name.rdns:
        for attribute in rdn:
            attr_type = _ATTRIBUTE_NAMES.get(attribute.oid, attribute.oid.dotted_string)
            components.append(f"{attr_type}={attribute.value}")
    return components


def _key_size(cert: x509.Certificate) -> int:
    public_key = cert.public_key()
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return 256
    if isinstance(public_key, ed448.Ed448PublicKey):
        return 456
    return getattr(public_key, "key_size", 0)


def _domains(cert: x509.Certificate) -> Tuple[List[str], Optional[str]]:
    """Return (domain names, application URI) asserted by the certificate."""
    domains: List[str] = []
    application_uri: Optional[str] = None

    try:
        san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME).value
    except x509.ExtensionNotFound:
        san = None

    if san is not None:
        domains.extend(san.get_values_for_type(x509.DNSName))
        domains.extend(str(ip) for ip in san.get_values_for_type(x509.IPAddress))
        uris = san.get_values_for_type(x509.UniformResourceIdentifier)
        if uris:
            application_uri = uris[0]
            if len(uris) > 1:
                logger.debug(f"Certificate carries {len(uris)} URIs, using {application_uri}")

    for attribute in cert.subject.get_attributes_for_oid(NameOID.DOMAIN_COMPONENT):
        if not any(d.lower() == str(attribute.value).lower() for d in domains):
            domains.append(str(attribute.value))

    return domains, application_uri


def parse_certificate(data: bytes, has_private_key: bool = False) -> CertificateRecord:
    """
    Parse a DER or PEM encoded certificate into a CertificateRecord.

    Args:
        data: Certificate bytes (DER, or PEM containing one certificate)
        has_private_key: Whether the caller can reach the matching private key

    Returns:
        CertificateRecord

    Raises:
        CertificateParseError: If the bytes are not a certificate
    """
    cert = _load_x509(data)
    domains, application_uri = _domains(cert)
    der = cert.public_bytes(serialization.Encoding.DER)

    record = CertificateRecord(
        thumbprint=cert.fingerprint(hashes.SHA1()).hex().upper(),
        subject=cert.subject.rfc4514_string(),
        subject_components=_name_components(cert.subject),
        domains=domains,
        application_uri=application_uri,
        key_size=_key_size(cert),
        raw_data=der,
        issuer=cert.issuer.rfc4514_string(),
        has_private_key=has_private_key,
    )
    logger.debug(f"Parsed certificate {record.subject} (thumbprint {record.thumbprint})")
    return record


def load_certificate_file(path: Path, has_private_key: bool = False) -> CertificateRecord:
    """Read and parse a certificate file (DER or PEM)."""
    return parse_certificate(Path(path).read_bytes(), has_private_key=has_private_key)


def parse_distinguished_name(name: str) -> List[str]:
    """
    Split a distinguished name string into ordered "TYPE=value" components.

    Accepts ',' or '/' separators, quoted values and backslash escapes.

    Raises:
        ConfigurationError: If a component has no '=' separator
    """
    components: List[str] = []
    if not name:
        return components

    separator = "/" if name.startswith("/") else ","
    current: List[str] = []
    in_quotes = False
    escaped = False

    for ch in name:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif ch == separator and not in_quotes:
            components.append("".join(current))
            current = []
        else:
            current.append(ch)
    components.append("".join(current))

    result: List[str] = []
    for component in components:
        component = component.strip()
        if not component:
            continue
        if "=" not in component:
            raise ConfigurationError(f"Invalid distinguished name component '{component}' in '{name}'")
        attr_type, value = component.split("=", 1)
        result.append(f"{attr_type.strip()}={value.strip()}")
    return result


def normalize_components(components: Sequence[str]) -> Tuple[str, ...]:
    """Canonical form used to compare subjects: upper-cased types, case-folded values."""
    normalized = []
    for component in components:
        attr_type, _, value = component.partition("=")
        attr_type = attr_type.strip().upper()
        attr_type = _TYPE_ALIASES.get(attr_type, attr_type)
        normalized.append(f"{attr_type}={value.strip().casefold()}")
    return tuple(normalized)


def compare_distinguished_name(a: Sequence[str], b: Sequence[str]) -> bool:
    """Component-for-component, case-insensitive comparison of two decomposed subjects."""
    return normalize_components(a) == normalize_components(b)


def subject_matches(record: CertificateRecord, subject_name: str) -> bool:
    """
    Check whether a configured subject name identifies the record.

    A plain name (no '=') is compared against the common name. A full
    distinguished name may be written in either RDN order, since RFC 4514
    strings list RDNs in reverse encoding order.
    """
    if "=" not in subject_name:
        common_names = [c.split("=", 1)[1] for c in record.subject_components if c.upper().startswith("CN=")]
        return any(cn.casefold() == subject_name.strip().casefold() for cn in common_names)

    wanted = parse_distinguished_name(subject_name)
    return compare_distinguished_name(wanted, record.subject_components) or compare_distinguished_name(
        list(reversed(wanted)), record.subject_components
    )
