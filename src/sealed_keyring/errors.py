"""Error taxonomy for the keyring backend.

Only four conditions are surfaced to callers:

- ``InvalidConfiguration`` while constructing a backend.
- ``KeyNotFound`` when no record matches a key.
- ``StoreError`` for every other native failure.
- ``LostUpdateError`` when an upsert loses a race with a concurrent removal.
"""

from __future__ import annotations


class KeyringError(Exception):
    """Base class for all keyring errors."""


class InvalidConfiguration(KeyringError, ValueError):
    """Backend configuration failed validation. Raised only at construction."""


class KeyNotFound(KeyringError, KeyError):
    """No record exists for ``(service, key)``."""

    def __init__(self, service: str, key: str) -> None:
        super().__init__(service, key)
        self.service = service
        self.key = key

    def __str__(self) -> str:
        return f"key {self.key!r} not found in service {self.service!r}"


class StoreError(KeyringError):
    """A native store failure, wrapped with the operation that caused it."""

    def __init__(
        self,
        operation: str,
        service: str,
        key: str | None = None,
        message: str = "",
    ) -> None:
        self.operation = operation
        self.service = service
        self.key = key
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        target = f"service={self.service!r}"
        if self.key is not None:
            target += f", key={self.key!r}"
        text = f"{self.operation} failed ({target})"
        if self.message:
            text += f": {self.message}"
        return text


class LostUpdateError(StoreError):
    """The record vanished between a duplicate-entry add and the update re-query."""
