"""Mutual trust between an application and a co-located discovery server."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from appcert.config import CertificateIdentifier, default_discovery_config_path
from appcert.models import CertificateRecord
from appcert.reconcile import TrustStoreReconciler
from appcert.stores import CertificateStore

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryServiceConfig:
    """Stores and identity of a discovery server, as read from its configuration."""

    trusted_store: CertificateStore
    issuer_store: Optional[CertificateStore] = None
    application_certificate: Optional[CertificateIdentifier] = None


class DiscoveryLocator(Protocol):
    def locate(self) -> Optional[DiscoveryServiceConfig]:
        ...


class FileDiscoveryLocator:
    """
    Finds the discovery server configuration at a well-known path.

    Reading the file is delegated to ``loader`` so this package stays out of
    the configuration file format. Without an explicit ``path`` the file is
    looked up under the working directory current at ``locate()`` time.
    """

    def __init__(
        self,
        loader: Callable[[Path], DiscoveryServiceConfig],
        path: Optional[Path] = None,
    ):
        self.loader = loader
        self.path = Path(path) if path is not None else None

    def locate(self) -> Optional[DiscoveryServiceConfig]:
        path = self.path if self.path is not None else default_discovery_config_path()
        if not path.is_file():
            logger.debug(f"No discovery server configuration at {path}")
            return None
        return self.loader(path)


class DiscoveryTrustPropagator:
    """Best-effort exchange of certificates with the discovery server."""

    def __init__(self, locator: DiscoveryLocator, reconciler: Optional[TrustStoreReconciler] = None):
        self.locator = locator
        self.reconciler = reconciler or TrustStoreReconciler()

    def propagate(
        self,
        certificate: CertificateRecord,
        old_thumbprint: Optional[str] = None,
        issuers: Optional[Sequence[CertificateRecord]] = None,
        local_store: Optional[CertificateStore] = None,
    ) -> None:
        """
        Trust the application in the discovery server and vice versa.

        Never raises: a missing or broken discovery server must not stop the
        application from installing or starting.
        """
        logger.info("Adding certificate to discovery server trust list.")
        try:
            discovery = self.locator.locate()
            if discovery is None:
                logger.info(
                    "Could not find the discovery server configuration file. Please confirm that it is installed."
                )
                return

            self.reconciler.add_or_replace(
                discovery.trusted_store,
                certificate,
                old_thumbprint=old_thumbprint,
                match_application_uri=True,
            )

            if issuers and discovery.issuer_store is not None:
                self.reconciler.add_if_absent(discovery.issuer_store, issuers)

            discovery_certificate = None
            if discovery.application_certificate is not None:
                discovery_certificate = discovery.application_certificate.find(need_private_key=False)

            if discovery_certificate is not None and local_store is not None:
                self.reconciler.add_or_replace(local_store, discovery_certificate)
                logger.info(f"Discovery server certificate {discovery_certificate.thumbprint} trusted locally")
        except Exception as e:
            logger.warning(f"Could not add certificate to discovery server trust list: {e}", exc_info=True)


def propagate_to_discovery_service(
    certificate: CertificateRecord,
    old_thumbprint: Optional[str],
    issuers: Optional[List[CertificateRecord]],
    local_store: Optional[CertificateStore],
    locator: DiscoveryLocator,
) -> None:
    DiscoveryTrustPropagator(locator).propagate(certificate, old_thumbprint, issuers, local_store)
