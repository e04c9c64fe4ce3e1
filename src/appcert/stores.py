"""Certificate store capability and the indices used to reconcile it."""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from appcert.certificate import normalize_components
from appcert.models import AccessRule, CertificateRecord

logger = logging.getLogger(__name__)


class CertificateStore(ABC):
    """
    A keyed collection of certificates addressable by thumbprint.

    Implementations own their storage format (folder, hardware token, OS
    keystore). Callers bracket every sequence of operations between
    ``open()`` and ``close()``; use :func:`opened_store` for that.
    """

    name: str = "store"

    @abstractmethod
    def open(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def enumerate(self) -> List[CertificateRecord]:
        """Return every record, in insertion order."""

    @abstractmethod
    def find_by_thumbprint(self, thumbprint: str) -> Optional[CertificateRecord]:
        ...

    @abstractmethod
    def add(self, record: CertificateRecord) -> None:
        ...

    @abstractmethod
    def delete(self, thumbprint: str) -> bool:
        """Delete a record; returns False when the thumbprint was not present."""

    @abstractmethod
    def set_access_rules(self, thumbprint: str, rules: List[AccessRule], replace_existing: bool) -> None:
        ...


class InMemoryCertificateStore(CertificateStore):
    """Process-local store that keeps records in insertion order."""

    def __init__(self, name: str = "memory", records: Iterable[CertificateRecord] = ()):
        self.name = name
        self._records: "OrderedDict[str, CertificateRecord]" = OrderedDict()
        self.access_rules: Dict[str, List[AccessRule]] = {}
        self.is_open = False
        self.open_count = 0
        for record in records:
            self._records[record.thumbprint.upper()] = record

    def open(self) -> None:
        if self.is_open:
            raise RuntimeError(f"Certificate store '{self.name}' is already open")
        self.is_open = True
        self.open_count += 1

    def close(self) -> None:
        self.is_open = False

    def _require_open(self) -> None:
        if not self.is_open:
            raise RuntimeError(f"Certificate store '{self.name}' is not open")

    def enumerate(self) -> List[CertificateRecord]:
        self._require_open()
        return list(self._records.values())

    def find_by_thumbprint(self, thumbprint: str) -> Optional[CertificateRecord]:
        self._require_open()
        return self._records.get(thumbprint.upper())

    def add(self, record: CertificateRecord) -> None:
        self._require_open()
        key = record.thumbprint.upper()
        if key in self._records:
            raise ValueError(f"A certificate with thumbprint {record.thumbprint} already exists in '{self.name}'")
        self._records[key] = record

    def delete(self, thumbprint: str) -> bool:
        self._require_open()
        return self._records.pop(thumbprint.upper(), None) is not None

    def set_access_rules(self, thumbprint: str, rules: List[AccessRule], replace_existing: bool) -> None:
        self._require_open()
        key = thumbprint.upper()
        if key not in self._records:
            raise KeyError(f"No certificate with thumbprint {thumbprint} in '{self.name}'")
        if replace_existing or key not in self.access_rules:
            self.access_rules[key] = list(rules)
        else:
            self.access_rules[key].extend(rules)

    @property
    def thumbprints(self) -> List[str]:
        """Snapshot of stored thumbprints without requiring the store to be open."""
        return list(self._records.keys())

    def __len__(self) -> int:
        return len(self._records)


@contextmanager
def opened_store(store: CertificateStore) -> Iterator[CertificateStore]:
    """Open a store for the duration of a block and close it on every exit path."""
    store.open()
    try:
        yield store
    finally:
        store.close()
        logger.debug(f"Closed certificate store '{getattr(store, 'name', store)}'")


SubjectKey = Tuple[str, ...]


class TrustStoreIndex:
    """
    Thumbprint and subject lookups over one snapshot of a store.

    The thumbprint map mirrors the store's own key; the subject index exists
    only to find the record a renewed certificate replaces.
    """

    def __init__(self, records: Iterable[CertificateRecord]):
        self.by_thumbprint: "OrderedDict[str, CertificateRecord]" = OrderedDict()
        self.by_subject: Dict[SubjectKey, List[CertificateRecord]] = {}
        for record in records:
            self.by_thumbprint[record.thumbprint.upper()] = record
            self.by_subject.setdefault(self.subject_key(record), []).append(record)

    @classmethod
    def from_store(cls, store: CertificateStore) -> "TrustStoreIndex":
        return cls(store.enumerate())

    @staticmethod
    def subject_key(record: CertificateRecord) -> SubjectKey:
        return normalize_components(record.subject_components)

    def contains(self, thumbprint: str) -> bool:
        return thumbprint.upper() in self.by_thumbprint

    def same_subject(self, record: CertificateRecord, match_application_uri: bool = False) -> List[CertificateRecord]:
        """Records sharing the record's decomposed subject, excluding the record itself."""
        return [
            existing
            for existing in self.by_subject.get(self.subject_key(record), [])
            if existing.thumbprint.upper() != record.thumbprint.upper()
            and (not match_application_uri or existing.application_uri == record.application_uri)
        ]
