"""Credential store backend.

Realizes the item lifecycle (get, get_metadata, set, remove, keys) against a
``SecureStorePrimitive`` under a policy resolved once at construction.

The primitive has no native upsert, so ``set`` adds first and, when the add
reports a duplicate, re-queries the record and replaces its secret data. Only
the secret bytes are replaced on that path; label, description and access
policy keep the values written when the record was created.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from sealed_keyring.config import KeyringConfig
from sealed_keyring.errors import KeyNotFound, LostUpdateError, StoreError
from sealed_keyring.models import (
    AccessPolicy,
    AuthenticationContext,
    Item,
    Metadata,
)
from sealed_keyring.native import (
    MatchLimit,
    NativeDuplicateItem,
    NativeItemNotFound,
    NativePatch,
    NativeQuery,
    NativeRecord,
    NativeStoreError,
    SecureStorePrimitive,
)
from sealed_keyring.policy import (
    PolicyStrategy,
    strategy_for,
    validate_biometric_reuse_duration,
)

logger = logging.getLogger(__name__)


class KeyringBackend:
    """Stores items in a secure store under one service namespace.

    Parameters
    ----------
    config:
        Backend configuration. Validated here; invalid names or a negative
        reuse duration raise ``InvalidConfiguration`` before any native call.
    primitive:
        The secure store the backend talks to.
    strategy:
        Policy strategy. Defaults to the one named by ``config.policy``.
    """

    def __init__(
        self,
        config: KeyringConfig,
        primitive: SecureStorePrimitive,
        strategy: PolicyStrategy | None = None,
    ) -> None:
        if strategy is None:
            strategy = strategy_for(config.policy)
        reuse = validate_biometric_reuse_duration(config.biometrics_reuse_duration)

        self._policy = strategy.resolve_policy(config)
        self._auth_context = AuthenticationContext(allowable_reuse_duration=reuse)
        self._service = config.service_name
        self._synchronizable = config.synchronizable
        self._primitive = primitive

    @property
    def service(self) -> str:
        return self._service

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    @property
    def authentication_context(self) -> AuthenticationContext:
        return self._auth_context

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _item_query(self, key: str, *, return_data: bool, return_ref: bool = False) -> NativeQuery:
        return NativeQuery(
            service=self._service,
            account=key,
            match_limit=MatchLimit.ONE,
            return_attributes=True,
            return_data=return_data,
            return_ref=return_ref,
            authentication_context=self._auth_context,
        )

    def _query_one(self, operation: str, query: NativeQuery) -> NativeRecord:
        key = query.account or ""
        try:
            results = self._primitive.query(query)
        except NativeItemNotFound:
            results = []
        except NativeStoreError as exc:
            logger.debug("%s failed for service=%r, account=%r: %s", operation, self._service, key, exc)
            raise StoreError(operation, self._service, key, str(exc)) from exc

        if not results:
            logger.debug("No results for service=%r, account=%r", self._service, key)
            raise KeyNotFound(self._service, key)
        return results[0]

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Item:
        """Return the item stored under *key*, secret data included."""
        logger.debug("Querying item for service=%r, account=%r", self._service, key)
        record = self._query_one("get", self._item_query(key, return_data=True))
        return Item(
            key=key,
            data=record.data,
            label=record.label,
            description=record.description,
        )

    def get_metadata(self, key: str) -> Metadata:
        """Return label, description and modification time. Never the secret."""
        logger.debug("Querying metadata for service=%r, account=%r", self._service, key)
        record = self._query_one(
            "get_metadata",
            self._item_query(key, return_data=False, return_ref=True),
        )
        return Metadata(
            item=Item(key=key, label=record.label, description=record.description),
            modification_time=record.modification_date,
        )

    def set(self, item: Item) -> None:
        """Create the item, or replace its secret data if it already exists."""
        record = NativeRecord(
            service=self._service,
            account=item.key,
            label=item.label,
            description=item.description,
            data=item.data,
            access_policy=self._policy,
            synchronizable=self._synchronizable and item.allow_sync,
        )

        logger.debug(
            "Adding service=%r, label=%r, account=%r", self._service, item.label, item.key
        )
        try:
            self._primitive.add(record)
        except NativeDuplicateItem:
            logger.debug(
                "Item already exists, updating service=%r, account=%r", self._service, item.key
            )
            self._update_data(item.key, item.data)
        except NativeStoreError as exc:
            raise StoreError("set", self._service, item.key, str(exc)) from exc

    def _update_data(self, key: str, data: bytes) -> None:
        query = self._item_query(key, return_data=False)
        try:
            results = self._primitive.query(query)
        except NativeItemNotFound:
            results = []
        except NativeStoreError as exc:
            raise StoreError("set", self._service, key, f"failed to query existing item: {exc}") from exc

        if not results:
            raise self._lost_update(key)

        try:
            self._primitive.update(query, NativePatch(data=data))
        except NativeItemNotFound:
            raise self._lost_update(key) from None
        except NativeStoreError as exc:
            raise StoreError("set", self._service, key, f"failed to update item: {exc}") from exc

    def _lost_update(self, key: str) -> LostUpdateError:
        logger.warning(
            "Item service=%r, account=%r vanished between add and update", self._service, key
        )
        return LostUpdateError(
            "set", self._service, key, "item was removed before it could be updated"
        )

    def remove(self, key: str) -> None:
        """Delete *key*. Raises ``KeyNotFound`` if it was not stored."""
        logger.debug("Removing item service=%r, account=%r", self._service, key)
        query = NativeQuery(service=self._service, account=key)
        try:
            self._primitive.delete(query)
        except NativeItemNotFound:
            raise KeyNotFound(self._service, key) from None
        except NativeStoreError as exc:
            raise StoreError("remove", self._service, key, str(exc)) from exc

    def keys(self) -> Iterator[str]:
        """Return the account name of every item in the service.

        Order is whatever the store returns and may differ between calls.
        """
        query = NativeQuery(
            service=self._service,
            match_limit=MatchLimit.ALL,
            return_attributes=True,
            authentication_context=self._auth_context,
        )
        logger.debug("Querying keys for service=%r", self._service)
        try:
            results = self._primitive.query(query)
        except NativeItemNotFound:
            results = []
        except NativeStoreError as exc:
            raise StoreError("keys", self._service, None, str(exc)) from exc

        logger.debug("Found %d results", len(results))
        return iter([record.account for record in results])
