"""Exceptions raised by appcert."""

from typing import Optional


class AppCertError(Exception):
    """Base class for all appcert errors."""


class CertificateParseError(AppCertError):
    """Raised when bytes cannot be decoded as an X.509 certificate."""


class ConfigurationError(AppCertError):
    """Raised when the application configuration cannot support the operation.

    Covers a missing certificate identifier, an unusable distinguished name and
    a local trust store that cannot be opened or written.
    """


class TrustStoreError(ConfigurationError):
    """Raised when a certificate store fails during reconciliation."""

    def __init__(self, message: str, store_name: Optional[str] = None):
        super().__init__(message)
        self.store_name = store_name


class PolicyViolation(AppCertError):
    """Raised when a certificate is rejected by the acceptance policy."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class HostResolutionError(AppCertError):
    """Raised when the local host name or its addresses cannot be resolved."""
