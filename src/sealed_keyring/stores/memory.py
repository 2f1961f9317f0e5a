"""In-process secure store primitive.

Keeps records in a dict keyed by ``(service, account)`` and reproduces the
platform's signalling: ``NativeItemNotFound`` on a miss, ``NativeDuplicateItem``
when adding over an existing record. Subclasses persist the table by
overriding ``_load`` and ``_commit``.
"""

from __future__ import annotations

import dataclasses
import threading
from datetime import datetime, timezone

from sealed_keyring.native import (
    MatchLimit,
    NativeDuplicateItem,
    NativeItemNotFound,
    NativePatch,
    NativeQuery,
    NativeRecord,
    SecureStorePrimitive,
)

RecordTable = dict[tuple[str, str], NativeRecord]


def _matches(record: NativeRecord, query: NativeQuery) -> bool:
    if record.sec_class != query.sec_class or record.service != query.service:
        return False
    return query.account is None or record.account == query.account


def _project(record: NativeRecord, query: NativeQuery) -> NativeRecord:
    """Copy *record*, blanking whatever the query did not ask for."""
    if query.return_attributes or query.return_ref:
        projected = dataclasses.replace(record)
    else:
        projected = NativeRecord(
            service=record.service, account=record.account, sec_class=record.sec_class
        )
    projected.data = record.data if query.return_data else b""
    return projected


class MemoryStorePrimitive(SecureStorePrimitive):
    """Dict-backed store. Safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: RecordTable = {}

    def _load(self) -> RecordTable:
        return self._records

    def _commit(self, records: RecordTable) -> None:
        self._records = records

    def query(self, query: NativeQuery) -> list[NativeRecord]:
        with self._lock:
            records = self._load()
        found = [_project(r, query) for r in records.values() if _matches(r, query)]
        if not found:
            raise NativeItemNotFound(
                f"no item for service={query.service!r}, account={query.account!r}"
            )
        if query.match_limit == MatchLimit.ONE:
            return found[:1]
        return found

    def add(self, record: NativeRecord) -> None:
        with self._lock:
            records = dict(self._load())
            ident = (record.service, record.account)
            if ident in records:
                raise NativeDuplicateItem(
                    f"item already exists for service={record.service!r}, "
                    f"account={record.account!r}"
                )
            now = datetime.now(timezone.utc)
            records[ident] = dataclasses.replace(
                record, creation_date=now, modification_date=now
            )
            self._commit(records)

    def update(self, query: NativeQuery, patch: NativePatch) -> None:
        with self._lock:
            records = dict(self._load())
            targets = [ident for ident, r in records.items() if _matches(r, query)]
            if not targets:
                raise NativeItemNotFound(
                    f"no item for service={query.service!r}, account={query.account!r}"
                )
            changes = {
                field.name: getattr(patch, field.name)
                for field in dataclasses.fields(patch)
                if getattr(patch, field.name) is not None
            }
            now = datetime.now(timezone.utc)
            for ident in targets:
                records[ident] = dataclasses.replace(
                    records[ident], modification_date=now, **changes
                )
            self._commit(records)

    def delete(self, query: NativeQuery) -> None:
        with self._lock:
            records = dict(self._load())
            targets = [ident for ident, r in records.items() if _matches(r, query)]
            if not targets:
                raise NativeItemNotFound(
                    f"no item for service={query.service!r}, account={query.account!r}"
                )
            for ident in targets:
                del records[ident]
            self._commit(records)
