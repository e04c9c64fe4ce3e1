"""Install and startup workflows for an application instance certificate."""

import logging
import re
from typing import List, Optional

from appcert.approval import ApprovalGate
from appcert.config import (
    DEFAULT_MINIMUM_KEY_SIZE,
    ApplicationConfiguration,
    CertificateIdentifier,
    InstallProfile,
)
from appcert.discovery import DiscoveryLocator, DiscoveryTrustPropagator
from appcert.domains import LOCALHOST, HostResolver, SocketHostResolver
from appcert.exceptions import ConfigurationError, PolicyViolation
from appcert.models import (
    AccessControlType,
    AccessRight,
    AccessRule,
    CertificateRecord,
    ReconcileOutcome,
)
from appcert.policy import CertificatePolicy
from appcert.reconcile import TrustStoreReconciler
from appcert.stores import opened_store

logger = logging.getLogger(__name__)

# Principals used when the install profile does not list any access rules.
USERS = "Users"
NETWORK_SERVICE = "NetworkService"
LOCAL_SERVICE = "LocalService"
ADMINISTRATORS = "Administrators"


def replace_localhost(uri: Optional[str], host_name: str) -> Optional[str]:
    """Replace the first 'localhost' (any case) in a URI with the machine's host name."""
    if not uri:
        return uri
    return re.sub(re.escape(LOCALHOST), lambda _m: host_name, uri, count=1, flags=re.IGNORECASE)


def get_access_rules(profile: Optional[InstallProfile]) -> List[AccessRule]:
    """
    Access rules to apply to the application's files and private key.

    Falls back to run access for users (and the service accounts when the
    application runs as a service). Administrators always keep configure
    access unless the profile already grants it to someone.
    """
    rules: List[AccessRule] = list(profile.access_rules) if profile else []
    has_admin = any(
        rule.right == AccessRight.CONFIGURE and rule.rule_type == AccessControlType.ALLOW for rule in rules
    )

    if not rules:
        rules.append(AccessRule(USERS, AccessRight.RUN))
        if profile and profile.install_as_service:
            rules.append(AccessRule(NETWORK_SERVICE, AccessRight.RUN))
            rules.append(AccessRule(LOCAL_SERVICE, AccessRight.RUN))

    if not has_admin:
        rules.append(AccessRule(ADMINISTRATORS, AccessRight.CONFIGURE))

    return rules


def add_to_trusted_store(
    configuration: ApplicationConfiguration,
    certificate: CertificateRecord,
    reconciler: Optional[TrustStoreReconciler] = None,
) -> Optional[ReconcileOutcome]:
    """
    Trust the application's own certificate in its trusted peer store.

    Returns None when no trusted peer store is configured.

    Raises:
        ValueError: If certificate is None
        TrustStoreError: If the store cannot be updated
    """
    if certificate is None:
        raise ValueError("certificate is required")

    if configuration.trusted_peer_store is None:
        logger.warning("Trusted peer store not specified.")
        return None

    reconciler = reconciler or TrustStoreReconciler()
    return reconciler.add_or_replace(configuration.trusted_peer_store, certificate)


def configure_private_key_access(identifier: CertificateIdentifier, rules: List[AccessRule]) -> bool:
    """Hand the access rules to the store holding the private key. Failures are logged."""
    try:
        certificate = identifier.find(need_private_key=True)
        if certificate is None or identifier.store is None:
            logger.debug("No private key to configure access for")
            return False
        with opened_store(identifier.store) as store:
            store.set_access_rules(certificate.thumbprint, rules, True)
        logger.info(f"Configured access to private key of {certificate.thumbprint}")
        return True
    except Exception as e:
        logger.warning(f"Could not set private key file permissions: {e}", exc_info=True)
        return False


class ApplicationInstance:
    """Runs the certificate part of installing or starting an application."""

    def __init__(
        self,
        configuration: ApplicationConfiguration,
        install_profile: Optional[InstallProfile] = None,
        approval_gate: Optional[ApprovalGate] = None,
        resolver: Optional[HostResolver] = None,
        discovery_locator: Optional[DiscoveryLocator] = None,
        reconciler: Optional[TrustStoreReconciler] = None,
    ):
        self.configuration = configuration
        self.install_profile = install_profile
        self.resolver = resolver or SocketHostResolver()
        self.reconciler = reconciler or TrustStoreReconciler()
        self.policy = CertificatePolicy(resolver=self.resolver, approval_gate=approval_gate)
        self.discovery_locator = discovery_locator

    def _find_certificate(self) -> CertificateRecord:
        identifier = self.configuration.application_certificate
        if identifier is None:
            raise ConfigurationError("Configuration file does not specify a certificate.")

        certificate = identifier.find(need_private_key=True)
        if certificate is not None:
            return certificate

        if identifier.find(need_private_key=False) is not None:
            raise ConfigurationError(f"Cannot access certificate private key. Subject={identifier.subject_name}")

        if identifier.thumbprint:
            if identifier.subject_name:
                by_subject = CertificateIdentifier(store=identifier.store, subject_name=identifier.subject_name)
                other = by_subject.find(need_private_key=True)
                if other is not None:
                    raise ConfigurationError(
                        "Thumbprint was explicitly specified in the configuration. "
                        "Another certificate with the same subject name was found. "
                        f"Requested: {identifier.subject_name} Found: {other.subject}"
                    )
            raise ConfigurationError(
                "Thumbprint was explicitly specified in the configuration. Cannot generate a new certificate."
            )

        raise ConfigurationError(
            f"There is no certificate with subject {identifier.subject_name} in the configuration. "
            "Please provide a certificate for the application in its certificate store."
        )

    def _trust(self, certificate: CertificateRecord) -> None:
        add_to_trusted_store(self.configuration, certificate, self.reconciler)

        if self.configuration.application_type.shares_discovery_trust and self.discovery_locator is not None:
            DiscoveryTrustPropagator(self.discovery_locator, self.reconciler).propagate(
                certificate,
                None,
                None,
                self.configuration.trusted_peer_store,
            )

    def check_application_instance_certificate(
        self,
        silent: bool = False,
        minimum_key_size: int = DEFAULT_MINIMUM_KEY_SIZE,
    ) -> bool:
        """
        Find, validate and trust the application's certificate at startup.

        Raises:
            ConfigurationError: If no usable certificate is configured or it
                cannot be trusted locally
            PolicyViolation: If the certificate is rejected
        """
        logger.info("Checking application instance certificate.")
        certificate = self._find_certificate()

        result = self.policy.evaluate(certificate, self.configuration, minimum_key_size, silent)
        if not result.accepted:
            raise PolicyViolation(result.reason or "Certificate rejected.")

        self._trust(certificate)
        return True

    def apply_install_profile(self) -> None:
        """Copy install-time overrides into the configuration."""
        profile = self.install_profile
        configuration = self.configuration
        if profile is None:
            return

        if profile.application_name:
            identifier = configuration.application_certificate
            if identifier is not None and identifier.subject_name == configuration.application_name:
                identifier.subject_name = profile.application_name
            configuration.application_name = profile.application_name

        if profile.application_uri:
            configuration.application_uri = profile.application_uri

        configuration.application_uri = replace_localhost(configuration.application_uri, self.resolver.host_name())

    def install(self, silent: bool = False) -> CertificateRecord:
        """
        Install the application's certificate.

        Silent installs skip the policy check, matching unattended setups
        where nobody can answer a prompt.
        """
        logger.info("Installing application.")
        self.apply_install_profile()

        certificate = self._find_certificate()
        minimum_key_size = self.install_profile.minimum_key_size if self.install_profile else DEFAULT_MINIMUM_KEY_SIZE

        if not silent:
            result = self.policy.evaluate(certificate, self.configuration, minimum_key_size, silent)
            if not result.accepted:
                raise PolicyViolation(result.reason or "Certificate rejected.")
        else:
            self.configuration.certificate = certificate

        self._trust(certificate)

        logger.info("Configuring file access.")
        configure_private_key_access(self.configuration.application_certificate, get_access_rules(self.install_profile))
        return certificate
