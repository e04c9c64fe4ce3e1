"""Data models for certificate policy and trust store results."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List


class ApplicationType(str, Enum):
    """Role an application plays on the network."""

    SERVER = "Server"
    CLIENT = "Client"
    CLIENT_AND_SERVER = "ClientAndServer"
    DISCOVERY_SERVER = "DiscoveryServer"

    @property
    def includes_server(self) -> bool:
        return self is not ApplicationType.CLIENT

    @property
    def shares_discovery_trust(self) -> bool:
        """Roles that register with a co-located discovery server."""
        return self in (ApplicationType.SERVER, ApplicationType.CLIENT_AND_SERVER)


class ReconcileOutcome(str, Enum):
    """What a trust store reconciliation did."""

    INSERTED = "Inserted"
    ALREADY_PRESENT = "AlreadyPresent"
    REPLACED = "Replaced"


class AccessRight(str, Enum):
    """Rights an access rule can grant on the application files and key."""

    RUN = "Run"
    UPDATE = "Update"
    CONFIGURE = "Configure"


class AccessControlType(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


@dataclass(frozen=True)
class CertificateRecord:
    """A parsed certificate as held by a certificate store.

    Records are built from DER bytes only (see ``appcert.certificate``), so the
    thumbprint always matches ``raw_data``.
    """

    thumbprint: str  # uppercase hex SHA-1 of raw_data
    subject: str  # RFC 4514
    subject_components: List[str]  # ordered "TYPE=value" components
    domains: List[str]  # SAN DNS names, SAN IPs, DC= components
    application_uri: Optional[str]  # first SAN URI
    key_size: int  # bits
    raw_data: bytes = field(repr=False)  # DER, public material only
    issuer: str = ""
    has_private_key: bool = False

    def public_copy(self) -> "CertificateRecord":
        """Return the same certificate without private key access."""
        if not self.has_private_key:
            return self
        return replace(self, has_private_key=False)


@dataclass
class AccessRule:
    """A principal/right/allow-deny triple applied to files and private keys."""

    identity_name: str
    right: AccessRight
    rule_type: AccessControlType = AccessControlType.ALLOW


@dataclass
class PolicyResult:
    """Outcome of evaluating a certificate against the acceptance policy."""

    accepted: bool
    reason: Optional[str] = None  # set when rejected
    overridden: List[str] = field(default_factory=list)  # violations the operator accepted

    def __bool__(self) -> bool:
        return self.accepted
