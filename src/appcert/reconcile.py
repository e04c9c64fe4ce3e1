"""Idempotent insertion of certificates into trust stores."""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from appcert.exceptions import AppCertError, TrustStoreError
from appcert.models import CertificateRecord, ReconcileOutcome
from appcert.stores import CertificateStore, TrustStoreIndex, opened_store

logger = logging.getLogger(__name__)


def _store_name(store: CertificateStore) -> str:
    return getattr(store, "name", type(store).__name__)


@contextmanager
def _reconciling(store: CertificateStore, action: str) -> Iterator[CertificateStore]:
    """Open the store once for a reconciliation and report store failures as TrustStoreError."""
    name = _store_name(store)
    try:
        with opened_store(store) as opened:
            yield opened
    except AppCertError:
        raise
    except Exception as e:
        logger.error(f"Certificate store '{name}' failed while trying to {action}: {e}")
        raise TrustStoreError(f"Could not {action} in certificate store '{name}': {e}", store_name=name) from e


class TrustStoreReconciler:
    """
    Keeps at most one current credential per subject in a store.

    Thumbprints identify records; subjects identify the application a
    record belongs to. A certificate whose thumbprint is already stored is
    left alone; otherwise every record with the same decomposed subject is
    deleted before the new certificate is added. Stores shared between
    installations (the discovery server's) also compare the application URI,
    so two installations with the same subject both stay trusted.
    """

    def add_or_replace(
        self,
        store: CertificateStore,
        certificate: CertificateRecord,
        old_thumbprint: Optional[str] = None,
        match_application_uri: bool = False,
    ) -> ReconcileOutcome:
        """
        Insert a certificate, replacing records that share its subject.

        Args:
            store: Target store
            certificate: Certificate to trust (only its public part is stored)
            old_thumbprint: Thumbprint of a previous certificate to delete first
            match_application_uri: Only replace records that also carry the
                same application URI

        Returns:
            ReconcileOutcome (ALREADY_PRESENT only when the store was not changed)

        Raises:
            TrustStoreError: If the store fails to open or to apply a change
        """
        if certificate is None:
            raise ValueError("certificate is required")

        with _reconciling(store, f"add certificate {certificate.thumbprint}") as opened:
            index = TrustStoreIndex.from_store(opened)
            replaced = False

            if old_thumbprint and old_thumbprint.upper() != certificate.thumbprint.upper():
                if opened.delete(old_thumbprint):
                    logger.info(f"Deleted previous certificate {old_thumbprint} from '{_store_name(store)}'")
                    replaced = True

            if index.contains(certificate.thumbprint):
                logger.debug(f"Certificate {certificate.thumbprint} already present in '{_store_name(store)}'")
                return ReconcileOutcome.REPLACED if replaced else ReconcileOutcome.ALREADY_PRESENT

            for existing in index.same_subject(certificate, match_application_uri=match_application_uri):
                if opened.delete(existing.thumbprint):
                    logger.info(
                        f"Replacing certificate {existing.thumbprint} with {certificate.thumbprint} "
                        f"for subject '{certificate.subject}' in '{_store_name(store)}'"
                    )
                    replaced = True

            opened.add(certificate.public_copy())
            logger.info(f"Added certificate {certificate.thumbprint} ({certificate.subject}) to '{_store_name(store)}'")

        return ReconcileOutcome.REPLACED if replaced else ReconcileOutcome.INSERTED

    def delete_by_thumbprint(self, store: CertificateStore, thumbprint: str) -> bool:
        """Delete a certificate; returns False when it was not present."""
        with _reconciling(store, f"delete certificate {thumbprint}") as opened:
            deleted = opened.delete(thumbprint)
        if deleted:
            logger.info(f"Deleted certificate {thumbprint} from '{_store_name(store)}'")
        else:
            logger.debug(f"Certificate {thumbprint} not present in '{_store_name(store)}', nothing to delete")
        return deleted

    def add_if_absent(self, store: CertificateStore, certificates: Iterable[CertificateRecord]) -> int:
        """Add issuer certificates that are not already stored; never replaces by subject."""
        added = 0
        with _reconciling(store, "add issuer certificates") as opened:
            for certificate in certificates:
                if opened.find_by_thumbprint(certificate.thumbprint) is None:
                    opened.add(certificate.public_copy())
                    added += 1
        logger.debug(f"Added {added} issuer certificate(s) to '{_store_name(store)}'")
        return added


_default_reconciler = TrustStoreReconciler()


def reconcile_trust(store: CertificateStore, certificate: CertificateRecord) -> ReconcileOutcome:
    """Add or replace a certificate in a trust store."""
    return _default_reconciler.add_or_replace(store, certificate)


def delete_by_thumbprint(store: CertificateStore, thumbprint: str) -> bool:
    return _default_reconciler.delete_by_thumbprint(store, thumbprint)
