"""Acceptance policy for application instance certificates."""

import logging
from typing import List, Optional

from appcert.approval import ApprovalGate, request_override
from appcert.config import DEFAULT_MINIMUM_KEY_SIZE, ApplicationConfiguration
from appcert.domains import HostResolver, SocketHostResolver, check_domains_in_certificate
from appcert.models import CertificateRecord, PolicyResult

logger = logging.getLogger(__name__)


class CertificatePolicy:
    """
    Decides whether a certificate may serve as an application's identity.

    Checks run in order and stop at the first violation the operator does
    not accept: presence, key size, then domains (server roles) or the
    application URI (client role).
    """

    def __init__(
        self,
        resolver: Optional[HostResolver] = None,
        approval_gate: Optional[ApprovalGate] = None,
    ):
        self.resolver = resolver or SocketHostResolver()
        self.approval_gate = approval_gate

    def evaluate(
        self,
        certificate: Optional[CertificateRecord],
        configuration: ApplicationConfiguration,
        minimum_key_size: int = DEFAULT_MINIMUM_KEY_SIZE,
        silent: bool = False,
    ) -> PolicyResult:
        """
        Evaluate a certificate for the configured application.

        On acceptance the configuration's certificate is set and, for
        client-only applications, its application URI is taken from the
        certificate.

        Raises:
            HostResolutionError: If server domains cannot be checked because
                the local addresses cannot be resolved
        """
        if certificate is None:
            logger.warning("No application instance certificate to evaluate")
            return PolicyResult(accepted=False, reason="No certificate was provided.")

        logger.info(f"Checking application instance certificate. {certificate.subject}")
        overridden: List[str] = []

        if certificate.key_size < minimum_key_size:
            message = (
                f"The key size ({certificate.key_size}) in the certificate is less than "
                f"the minimum provided ({minimum_key_size}). Use certificate anyway?"
            )
            if not request_override(message, self.approval_gate, silent):
                return PolicyResult(accepted=False, reason=message)
            overridden.append(message)

        application_type = configuration.application_type
        if application_type.includes_server:
            logger.info(f"Checking domains in certificate. {certificate.subject}")
            domains_ok = check_domains_in_certificate(
                configuration.server_domain_names(),
                certificate.domains,
                self.resolver,
                approval_gate=self.approval_gate,
                silent=silent,
            )
            if not domains_ok:
                return PolicyResult(
                    accepted=False,
                    reason="The certificate does not cover the domains the server is configured to use.",
                    overridden=overridden,
                )
        else:
            if not certificate.application_uri:
                message = "The Application URI could not be read from the certificate. Use certificate anyway?"
                if not request_override(message, self.approval_gate, silent):
                    return PolicyResult(accepted=False, reason=message, overridden=overridden)
                overridden.append(message)
            if configuration.application_uri != certificate.application_uri:
                logger.info(
                    f"Application URI updated from certificate: "
                    f"{configuration.application_uri} -> {certificate.application_uri}"
                )
            configuration.application_uri = certificate.application_uri

        configuration.certificate = certificate
        return PolicyResult(accepted=True, overridden=overridden)


def evaluate_certificate(
    certificate: Optional[CertificateRecord],
    configuration: ApplicationConfiguration,
    minimum_key_size: int = DEFAULT_MINIMUM_KEY_SIZE,
    silent: bool = True,
    approval_gate: Optional[ApprovalGate] = None,
    resolver: Optional[HostResolver] = None,
) -> bool:
    """Return True when the certificate is acceptable for the configuration."""
    policy = CertificatePolicy(resolver=resolver, approval_gate=approval_gate)
    return policy.evaluate(certificate, configuration, minimum_key_size, silent).accepted
