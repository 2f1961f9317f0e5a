"""Boundary with the platform secure-storage primitive.

The primitive stores attribute-tagged records and exposes four verbs:
query, add, update and delete. It signals a missing record with
``NativeItemNotFound`` and an existing record on add with
``NativeDuplicateItem``. Anything else is a ``NativeStoreError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sealed_keyring.models import AccessPolicy, AuthenticationContext


class SecClass(str, Enum):
    GENERIC_PASSWORD = "genp"


class MatchLimit(str, Enum):
    ONE = "one"
    ALL = "all"


class NativeStoreError(Exception):
    """Opaque failure reported by the store primitive."""


class NativeItemNotFound(NativeStoreError):
    """No record matched the query."""


class NativeDuplicateItem(NativeStoreError):
    """A record with the same service and account already exists."""


@dataclass(frozen=True)
class NativeQuery:
    """Identifies records by class, service and (optionally) account."""

    service: str
    account: str | None = None
    sec_class: SecClass = SecClass.GENERIC_PASSWORD
    match_limit: MatchLimit = MatchLimit.ONE
    return_attributes: bool = False
    return_data: bool = False
    return_ref: bool = False
    authentication_context: AuthenticationContext | None = None


@dataclass
class NativeRecord:
    """A stored record. Fields not requested by a query come back empty."""

    service: str
    account: str
    sec_class: SecClass = SecClass.GENERIC_PASSWORD
    label: str = ""
    description: str = ""
    data: bytes = b""
    access_policy: AccessPolicy | None = None
    synchronizable: bool = False
    creation_date: datetime | None = None
    modification_date: datetime | None = None


@dataclass(frozen=True)
class NativePatch:
    """Fields to replace on an existing record. ``None`` leaves a field as is."""

    data: bytes | None = None
    label: str | None = None
    description: str | None = None
    access_policy: AccessPolicy | None = None


class SecureStorePrimitive(ABC):
    """Abstract platform secure store.

    Implementations must raise ``NativeItemNotFound`` / ``NativeDuplicateItem``
    for the corresponding conditions so callers can branch on them.
    """

    @abstractmethod
    def query(self, query: NativeQuery) -> list[NativeRecord]:
        """Return matching records. May raise ``NativeItemNotFound`` or return []."""

    @abstractmethod
    def add(self, record: NativeRecord) -> None:
        """Insert a record. Raises ``NativeDuplicateItem`` if it already exists."""

    @abstractmethod
    def update(self, query: NativeQuery, patch: NativePatch) -> None:
        """Apply *patch* to the records matched by *query*."""

    @abstractmethod
    def delete(self, query: NativeQuery) -> None:
        """Delete matched records. Raises ``NativeItemNotFound`` if none match."""
