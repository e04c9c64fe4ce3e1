"""Application configuration consumed by the certificate workflow."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from appcert.certificate import subject_matches
from appcert.domains import server_domain_names
from appcert.models import AccessRule, ApplicationType, CertificateRecord
from appcert.stores import CertificateStore, opened_store

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_KEY_SIZE = 2048
DISCOVERY_CONFIG_RELATIVE_PATH = Path("discovery") / "discovery-server.config"


def default_discovery_config_path() -> Path:
    """Discovery server configuration under the current working directory."""
    return Path.cwd() / DISCOVERY_CONFIG_RELATIVE_PATH


@dataclass
class CertificateIdentifier:
    """Locates a certificate in a store by thumbprint or subject name."""

    store: Optional[CertificateStore] = None
    thumbprint: Optional[str] = None
    subject_name: Optional[str] = None

    def find(self, need_private_key: bool = False) -> Optional[CertificateRecord]:
        """
        Find the certificate this identifier points at.

        The thumbprint wins when set; otherwise the first record whose
        subject matches is returned.
        """
        if self.store is None:
            return None

        with opened_store(self.store) as store:
            candidates: List[CertificateRecord] = []
            if self.thumbprint:
                found = store.find_by_thumbprint(self.thumbprint)
                if found is not None:
                    candidates.append(found)
            elif self.subject_name:
                candidates = [r for r in store.enumerate() if subject_matches(r, self.subject_name)]

        for record in candidates:
            if need_private_key and not record.has_private_key:
                continue
            return record
        return None


@dataclass
class ApplicationConfiguration:
    """The subset of an application's configuration the certificate workflow uses."""

    application_name: str
    application_type: ApplicationType = ApplicationType.SERVER
    application_uri: Optional[str] = None
    base_addresses: List[str] = field(default_factory=list)
    application_certificate: Optional[CertificateIdentifier] = None
    trusted_peer_store: Optional[CertificateStore] = None
    trusted_issuer_store: Optional[CertificateStore] = None
    certificate: Optional[CertificateRecord] = None  # set once the policy accepts one

    def server_domain_names(self) -> List[str]:
        return server_domain_names(self.base_addresses)


@dataclass
class InstallProfile:
    """Installation-time overrides for an application."""

    application_name: Optional[str] = None
    application_uri: Optional[str] = None
    minimum_key_size: int = DEFAULT_MINIMUM_KEY_SIZE
    access_rules: List[AccessRule] = field(default_factory=list)
    install_as_service: bool = False
